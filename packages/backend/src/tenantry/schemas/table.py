"""Pydantic schemas for data tables, rows and views.

Learn: Filter trees are validated as FilterGroup on the way in, so a
malformed tree is a 422 before any service code runs.
"""

import uuid
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from tenantry.query.filters import FilterGroup


class FieldSpec(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: str = Field(..., min_length=1, max_length=20)


class SortSpec(BaseModel):
    column: str = Field(..., min_length=1)
    direction: Literal["asc", "desc"] = "asc"


# ─── Tables ───────────────────────────────────────────────


class TableCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = Field(None, max_length=100, pattern=r"^[a-z0-9-]+$")
    fields: list[FieldSpec] = Field(default_factory=list)


class TableRead(BaseModel):
    id: uuid.UUID
    app_id: uuid.UUID
    name: str
    slug: str
    fields: list[FieldSpec]
    created_at: datetime

    model_config = {"from_attributes": True}


class RowCreate(BaseModel):
    data: dict[str, Any]


class RowRead(BaseModel):
    id: uuid.UUID
    data: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}


# ─── Views ────────────────────────────────────────────────


class ViewCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    filters: Optional[FilterGroup] = None
    sorts: list[SortSpec] = Field(default_factory=list)


class ViewRead(BaseModel):
    id: uuid.UUID
    table_id: uuid.UUID
    name: str
    filters: Optional[dict] = None
    sorts: list[dict]
    created_at: datetime

    model_config = {"from_attributes": True}


class ViewQuery(BaseModel):
    """Body of a view query.

    filters replaces the view's saved filters for this request; additional
    narrows on top. Both stay under the tenant boundary.
    """

    filters: Optional[FilterGroup] = None
    additional: Optional[FilterGroup] = None
    sorts: Optional[list[SortSpec]] = None
    limit: int = Field(50, ge=1, le=500)
    offset: int = Field(0, ge=0)
