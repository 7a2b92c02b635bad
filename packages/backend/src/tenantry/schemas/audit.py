"""Pydantic schemas for the audit log."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AuditUser(BaseModel):
    id: uuid.UUID
    email: str
    name: Optional[str] = None

    model_config = {"from_attributes": True}


class AuditLogRead(BaseModel):
    id: uuid.UUID
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    data: dict
    user: Optional[AuditUser] = None
    created_at: datetime
