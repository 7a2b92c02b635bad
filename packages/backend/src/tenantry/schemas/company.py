"""Pydantic schemas for companies, members and invites."""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from tenantry.schemas.auth import EMAIL_PATTERN


# ─── Companies ────────────────────────────────────────────


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=100, pattern=r"^[a-z0-9-]+$")
    description: Optional[str] = None
    logo: Optional[str] = None


class CompanyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    logo: Optional[str] = None


class CompanyRead(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    description: Optional[str] = None
    logo: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CompanyWithRole(CompanyRead):
    role: str


class SwitchCompanyRequest(BaseModel):
    company_id: uuid.UUID


# ─── Members / invites ────────────────────────────────────


class MemberRead(BaseModel):
    user_id: uuid.UUID
    email: str
    name: Optional[str] = None
    role: str
    joined_at: datetime


class InviteCreate(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    role: Literal["admin", "member"] = "member"


class InviteRead(BaseModel):
    id: uuid.UUID
    email: str
    role: str
    invite_code: str
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class InviteAccept(BaseModel):
    code: str = Field(..., min_length=1, max_length=32)


class InvitePreview(BaseModel):
    """What an invitee sees before signing in."""

    email: str
    company_name: str
    role: str
