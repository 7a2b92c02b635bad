"""Identity resolver — session token → CurrentUser.

Learn: This is the unified auth context. The resolver loads the session,
then the user, then (if the session has an active company) the membership
row, and freezes all of it into a CurrentUser. Downstream code uses
CurrentUser.company to scope every query; it never re-reads the session.

Switching company always re-checks membership against the database. The
result of an earlier resolution is never trusted for that decision.
"""

import uuid
from datetime import datetime
from typing import Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.auth.sessions import SessionManager
from tenantry.config import settings
from tenantry.db.models import Company, CompanyMember, User
from tenantry.errors import Forbidden

logger = structlog.get_logger()

ROLES = ("owner", "admin", "member")


class CompanyContext(BaseModel):
    """The active company and the user's role in it."""

    id: uuid.UUID
    name: str
    slug: str
    role: str

    model_config = {"frozen": True}


class SessionContext(BaseModel):
    id: uuid.UUID
    company_id: Optional[uuid.UUID] = None
    expires_at: Optional[datetime] = None

    model_config = {"frozen": True}


class CurrentUser(BaseModel):
    """Authenticated identity attached to a request."""

    id: uuid.UUID
    email: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    email_verified_at: Optional[datetime] = None
    session: SessionContext
    company: Optional[CompanyContext] = None

    model_config = {"frozen": True}

    def has_role(self, *roles: str) -> bool:
        return self.company is not None and self.company.role in roles


class IdentityResolver:
    """Builds CurrentUser from credentials and guards company switches."""

    def __init__(self, db: AsyncSession, sessions: Optional[SessionManager] = None):
        self.db = db
        self.sessions = sessions or SessionManager(db)

    async def resolve(self, token: Optional[str]) -> Optional[CurrentUser]:
        """Resolve a session token, or return None if unauthenticated."""
        if not token:
            return None
        session = await self.sessions.get_session_by_token(token)
        if session is None:
            return None

        user = await self.db.get(User, session.user_id)
        if user is None:
            logger.warning("auth.session_orphaned", session_id=str(session.id))
            return None

        company = None
        if session.company_id is not None:
            company = await self.load_membership(user.id, session.company_id)
            if company is None:
                logger.info(
                    "auth.active_company_revoked",
                    user_id=str(user.id),
                    company_id=str(session.company_id),
                )

        return CurrentUser(
            id=user.id,
            email=user.email,
            name=user.name,
            avatar=user.avatar,
            email_verified_at=user.email_verified_at,
            session=SessionContext(
                id=session.id,
                company_id=session.company_id,
                expires_at=session.expires_at,
            ),
            company=company,
        )

    async def resolve_dev_identity(self) -> Optional[CurrentUser]:
        """Fixed identity for local development only.

        Resolves the configured dev user with their first membership. Only
        callable when insecure_dev_identity is on; config validation keeps
        that flag off outside development.
        """
        if not settings.insecure_dev_identity:
            raise RuntimeError("insecure_dev_identity is disabled")

        result = await self.db.execute(
            select(User).where(User.email == settings.dev_identity_email)
        )
        user = result.scalars().first()
        if user is None:
            logger.warning(
                "auth.dev_identity_missing", email=settings.dev_identity_email
            )
            return None

        result = await self.db.execute(
            select(CompanyMember.company_id)
            .where(CompanyMember.user_id == user.id)
            .order_by(CompanyMember.created_at)
            .limit(1)
        )
        company_id = result.scalars().first()
        company = (
            await self.load_membership(user.id, company_id) if company_id else None
        )
        logger.warning("auth.dev_identity_used", user_id=str(user.id))
        return CurrentUser(
            id=user.id,
            email=user.email,
            name=user.name,
            avatar=user.avatar,
            email_verified_at=user.email_verified_at,
            session=SessionContext(id=uuid.UUID(int=0), company_id=company_id),
            company=company,
        )

    async def load_membership(
        self,
        user_id: uuid.UUID,
        company_id: uuid.UUID,
    ) -> Optional[CompanyContext]:
        """Return the user's role in a company, or None if not a member."""
        result = await self.db.execute(
            select(Company, CompanyMember.role)
            .join(CompanyMember, CompanyMember.company_id == Company.id)
            .where(
                Company.id == company_id,
                CompanyMember.user_id == user_id,
            )
            .limit(1)
        )
        row = result.first()
        if row is None:
            return None
        company, role = row
        return CompanyContext(id=company.id, name=company.name, slug=company.slug, role=role)

    async def switch_company(
        self,
        user: CurrentUser,
        company_id: uuid.UUID,
    ) -> CompanyContext:
        """Make company_id the session's active company.

        Raises Forbidden (and leaves the session untouched) when the user
        holds no membership in that company.
        """
        membership = await self.load_membership(user.id, company_id)
        if membership is None:
            logger.warning(
                "auth.switch_company_denied",
                user_id=str(user.id),
                company_id=str(company_id),
            )
            raise Forbidden("You are not a member of this company")

        await self.sessions.update_session_company(user.session.id, company_id)
        return membership
