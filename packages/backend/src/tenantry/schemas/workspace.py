"""Pydantic schemas for workspaces and apps."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

_SLUG = r"^[a-z0-9-]+$"


# ─── Workspaces ───────────────────────────────────────────


class WorkspaceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=100, pattern=_SLUG)
    icon: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class WorkspaceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    icon: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class WorkspaceRead(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    icon: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


# ─── Apps ─────────────────────────────────────────────────


class AppCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=100, pattern=_SLUG)
    workspace_id: Optional[uuid.UUID] = None
    icon: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class AppUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    icon: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None


class AppRead(BaseModel):
    id: uuid.UUID
    workspace_id: Optional[uuid.UUID] = None
    name: str
    slug: str
    icon: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}
