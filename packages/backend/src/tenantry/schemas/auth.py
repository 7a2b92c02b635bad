"""Pydantic schemas for auth, sessions and the current user.

Learn: Request bodies validate at the edge; services receive plain values.
Read schemas use from_attributes so routes can return ORM rows directly.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ─── Requests ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(None, max_length=100)


class LoginRequest(BaseModel):
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=1)


class MagicLinkSendRequest(BaseModel):
    """Public send only ever issues login links."""
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)


class MagicLinkVerifyRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=128)
    type: Literal["login", "invite", "verify_email"] = "login"


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    avatar: Optional[str] = None


# ─── Responses ────────────────────────────────────────────


class UserRead(BaseModel):
    id: uuid.UUID
    email: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    email_verified_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CompanySummary(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    role: str


class MeRead(UserRead):
    """The caller plus their active company, if any."""
    company: Optional[CompanySummary] = None


class SessionRead(BaseModel):
    token: str
    expires_at: datetime

    model_config = {"from_attributes": True}


class AuthResult(BaseModel):
    user: UserRead
    session: Optional[SessionRead] = None
