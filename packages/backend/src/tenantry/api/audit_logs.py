"""Audit log API — the active company's history, for owners and admins."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.api.responses import paginated_response
from tenantry.audit.store import AuditStore
from tenantry.auth.dependencies import require_role
from tenantry.auth.identity import CurrentUser
from tenantry.db.engine import get_db
from tenantry.schemas.audit import AuditLogRead, AuditUser

router = APIRouter(prefix="/audit-logs")


@router.get("")
async def list_audit_logs(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: CurrentUser = Depends(require_role("owner", "admin")),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await AuditStore(db).search(
        user.company.id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        limit=limit,
        offset=offset,
    )
    data = [
        AuditLogRead(
            id=entry.id,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            data=entry.data,
            user=AuditUser.model_validate(actor) if actor is not None else None,
            created_at=entry.created_at,
        )
        for entry, actor in rows
    ]
    return paginated_response(data, total, limit, offset)
