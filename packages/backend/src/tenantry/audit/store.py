"""Audit store — append-only log of security-relevant actions.

Learn: Entries are only ever inserted, never updated. The store flushes but
does not commit; the entry becomes durable with the caller's transaction,
so an audited action and its audit row succeed or fail together.
"""

import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.db.models import AuditLog, User


class AuditStore:
    """Append-only audit log backed by the database."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[uuid.UUID | str] = None,
        *,
        company_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        data: Optional[dict] = None,
    ) -> AuditLog:
        entry = AuditLog(
            company_id=company_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            data=data or {},
        )
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_for_company(
        self,
        company_id: uuid.UUID,
        actions: list[str] | None = None,
        limit: int = 100,
    ) -> list[AuditLog]:
        query = (
            select(AuditLog)
            .where(AuditLog.company_id == company_id)
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
        )
        if actions:
            query = query.where(AuditLog.action.in_(actions))
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def search(
        self,
        company_id: uuid.UUID,
        *,
        action: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[tuple[AuditLog, Optional[User]]], int]:
        """One page of a company's entries, newest first, with each actor."""
        filters = [AuditLog.company_id == company_id]
        if action:
            filters.append(AuditLog.action == action)
        if entity_type:
            filters.append(AuditLog.entity_type == entity_type)
        if entity_id:
            filters.append(AuditLog.entity_id == entity_id)

        total = await self.db.scalar(
            select(func.count()).select_from(AuditLog).where(*filters)
        )
        result = await self.db.execute(
            select(AuditLog, User)
            .outerjoin(User, User.id == AuditLog.user_id)
            .where(*filters)
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return [(entry, user) for entry, user in result.all()], total or 0

    async def list_by_action(self, action: str, limit: int = 100) -> list[AuditLog]:
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.action == action)
            .order_by(AuditLog.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
