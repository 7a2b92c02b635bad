"""Session manager — issuance, lookup, company rebinding, deletion.

Learn: A session row is the server-side half of the session cookie. The
token is the only thing the browser ever sees. Lookups treat "no such
token" and "expired" identically for callers (both return None); the
expired case is only logged so a cleanup job can be scheduled.

Nothing here swallows storage errors — a failed write propagates.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.auth.tokens import generate_token
from tenantry.config import settings
from tenantry.db.models import Session
from tenantry.db.types import utcnow

logger = structlog.get_logger()


class SessionManager:
    """Owns the Session table."""

    def __init__(
        self,
        db: AsyncSession,
        ttl: Optional[timedelta] = None,
        sliding: Optional[bool] = None,
    ):
        self.db = db
        self.ttl = ttl or timedelta(days=settings.session_ttl_days)
        self.sliding = settings.session_sliding_renewal if sliding is None else sliding

    async def create_session(
        self,
        user_id: uuid.UUID,
        company_id: Optional[uuid.UUID] = None,
    ) -> Session:
        """Persist a new session and return it (token included)."""
        session = Session(
            token=generate_token(),
            user_id=user_id,
            company_id=company_id,
            expires_at=utcnow() + self.ttl,
        )
        self.db.add(session)
        await self.db.flush()
        logger.info(
            "auth.session_created",
            session_id=str(session.id),
            user_id=str(user_id),
            company_id=str(company_id) if company_id else None,
        )
        return session

    async def get_session_by_token(self, token: str) -> Optional[Session]:
        """Return the live session for a token, or None.

        Missing and expired sessions are indistinguishable to the caller.
        With sliding renewal on, a session past half its lifetime is
        extended to a full TTL.
        """
        if not token:
            return None
        result = await self.db.execute(select(Session).where(Session.token == token))
        session = result.scalars().first()
        if session is None:
            return None

        now = utcnow()
        if session.expires_at <= now:
            logger.info("auth.session_expired", session_id=str(session.id))
            return None

        if self.sliding and session.expires_at - now < self.ttl / 2:
            await self._renew(session, now + self.ttl)
        return session

    async def update_session_company(
        self,
        session_id: uuid.UUID,
        company_id: Optional[uuid.UUID],
    ) -> None:
        """Rebind the active company.

        Performs no membership check: the caller must have verified that
        the session's user belongs to company_id. Last write wins.
        """
        await self.db.execute(
            update(Session)
            .where(Session.id == session_id)
            .values(company_id=company_id)
        )
        logger.info(
            "auth.session_company_updated",
            session_id=str(session_id),
            company_id=str(company_id) if company_id else None,
        )

    async def delete_session(self, token: str) -> None:
        """Delete a session by token. Unknown tokens are not an error."""
        await self.db.execute(delete(Session).where(Session.token == token))

    async def delete_user_sessions(self, user_id: uuid.UUID) -> int:
        """Delete every session of a user (logout on all devices)."""
        result = await self.db.execute(delete(Session).where(Session.user_id == user_id))
        return result.rowcount or 0

    async def delete_expired_sessions(self) -> int:
        result = await self.db.execute(
            delete(Session).where(Session.expires_at <= utcnow())
        )
        removed = result.rowcount or 0
        logger.info("auth.expired_sessions_purged", count=removed)
        return removed

    async def _renew(self, session: Session, expires_at: datetime) -> None:
        session.expires_at = expires_at
        await self.db.flush()
        logger.debug("auth.session_renewed", session_id=str(session.id))
