"""Request-scoped context populated by the pipeline stages.

Learn: Entities are attached as frozen pydantic snapshots, not live ORM
objects. Handlers get values they can trust and cannot mutate, and the
pipeline's database session can be closed before the handler runs.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel

from tenantry.auth.identity import CurrentUser


class ContextAlreadySet(RuntimeError):
    """Raised when a stage tries to attach a name twice."""


class WorkspaceContext(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    slug: str
    name: str
    icon: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "frozen": True}


class AppContext(BaseModel):
    id: uuid.UUID
    company_id: uuid.UUID
    workspace_id: Optional[uuid.UUID] = None
    slug: str
    name: str
    icon: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "frozen": True}


class RequestContext:
    """Write-once mapping of resolved entities for one request."""

    def __init__(self):
        self._entries: dict[str, Any] = {}

    def attach(self, name: str, value: Any) -> None:
        if name in self._entries:
            raise ContextAlreadySet(f"Context '{name}' is already set")
        self._entries[name] = value

    def get(self, name: str, default: Any = None) -> Any:
        return self._entries.get(name, default)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._entries)

    @property
    def user(self) -> Optional[CurrentUser]:
        return self._entries.get("user")

    @property
    def workspace(self) -> Optional[WorkspaceContext]:
        return self._entries.get("workspace")

    @property
    def app(self) -> Optional[AppContext]:
        return self._entries.get("app")
