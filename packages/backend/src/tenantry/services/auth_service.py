"""Auth service — registration, password login, magic-link exchange.

Learn: Service layer separates business logic from HTTP routing. Routes
deal with cookies and status codes; this class turns credentials into
sessions. Every path that creates a session goes through _start_session,
which only honours a preferred (cookie) company after re-checking that the
user is still a member of it.
"""

import uuid
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.audit.actions import EMAIL_VERIFIED, USER_LOGIN, USER_LOGOUT, USER_LOGOUT_ALL, USER_REGISTERED
from tenantry.audit.store import AuditStore
from tenantry.auth.identity import IdentityResolver
from tenantry.auth.magic_links import MagicLinkAlreadyUsed, MagicLinkManager, MagicLinkType
from tenantry.auth.password import hash_password, verify_password
from tenantry.auth.sessions import SessionManager
from tenantry.db.models import CompanyInvite, MagicLink, Session, User
from tenantry.db.types import utcnow
from tenantry.errors import Conflict, NotFound, Unauthorized, ValidationError

logger = structlog.get_logger()


class AuthService:
    """Credential exchange and session lifecycle for users."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sessions = SessionManager(db)
        self.links = MagicLinkManager(db)
        self.resolver = IdentityResolver(db, self.sessions)
        self.audit = AuditStore(db)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalars().first()

    # ─── Registration / password login ──────────────────

    async def register(
        self,
        email: str,
        password: str,
        name: Optional[str] = None,
    ) -> tuple[User, Session]:
        """Create a password account and sign it in."""
        if await self.get_user_by_email(email):
            raise Conflict("Email already registered")
        user = User(
            email=email.strip().lower(),
            name=name,
            password_hash=hash_password(password),
        )
        self.db.add(user)
        await self.db.flush()
        await self.audit.append(USER_REGISTERED, "user", user.id, user_id=user.id)
        user.last_login_at = utcnow()
        session = await self._start_session(user, None, "register")
        await self.db.commit()
        return user, session

    async def login_with_password(
        self,
        email: str,
        password: str,
        preferred_company_id: Optional[uuid.UUID] = None,
    ) -> tuple[User, Session]:
        user = await self.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            raise Unauthorized("Invalid email or password")
        user.last_login_at = utcnow()
        session = await self._start_session(user, preferred_company_id, "password")
        await self.db.commit()
        return user, session

    # ─── Magic links ────────────────────────────────────

    async def request_magic_link(
        self, email: str, type: MagicLinkType = "login"
    ) -> MagicLink:
        link = await self.links.create_magic_link(email, type)
        await self.db.commit()
        return link

    async def verify_magic_link(
        self,
        token: str,
        type: MagicLinkType = "login",
        preferred_company_id: Optional[uuid.UUID] = None,
    ) -> tuple[User, Optional[Session], MagicLink]:
        """Redeem a link issued for `type`; a link of another type is not found.

        login  → session for an existing user (404 if the user is gone)
        invite → session, creating the user on first use, but only while a
                 company invite for the email is pending
        verify_email → marks the email verified, no session
        """
        try:
            link = await self.links.redeem(token, type)
        except MagicLinkAlreadyUsed:
            # Keep the replay audit row.
            await self.db.commit()
            raise
        now = utcnow()
        user = await self.get_user_by_email(link.email)

        if link.type == "verify_email":
            if user is None:
                await self.db.commit()
                raise NotFound("User not found")
            if user.email_verified_at is None:
                user.email_verified_at = now
                await self.audit.append(EMAIL_VERIFIED, "user", user.id, user_id=user.id)
            await self.db.commit()
            return user, None, link

        if link.type == "invite" and not await self._has_pending_invite(link.email):
            await self.db.commit()
            raise NotFound("Invitation not found or has expired")

        if user is None:
            if link.type != "invite":
                # The link is spent either way; the caller sees a plain 404.
                await self.db.commit()
                raise NotFound("User not found")
            user = User(email=link.email)
            self.db.add(user)
            await self.db.flush()
            await self.audit.append(USER_REGISTERED, "user", user.id, user_id=user.id)

        # Possession of the mailbox proves the address.
        if user.email_verified_at is None:
            user.email_verified_at = now
        user.last_login_at = now
        session = await self._start_session(user, preferred_company_id, "magic_link")
        await self.db.commit()
        return user, session, link

    # ─── Logout / profile ───────────────────────────────

    async def logout(self, token: Optional[str]) -> None:
        """Delete the session behind token. Unknown tokens are a no-op."""
        if not token:
            return
        session = await self.sessions.get_session_by_token(token)
        await self.sessions.delete_session(token)
        if session is not None:
            await self.audit.append(
                USER_LOGOUT, "user", session.user_id,
                user_id=session.user_id, company_id=session.company_id,
            )
        await self.db.commit()

    async def logout_everywhere(self, user_id: uuid.UUID) -> int:
        removed = await self.sessions.delete_user_sessions(user_id)
        await self.audit.append(
            USER_LOGOUT_ALL, "user", user_id, user_id=user_id, data={"sessions": removed}
        )
        await self.db.commit()
        return removed

    async def change_password(
        self, user_id: uuid.UUID, current_password: str, new_password: str
    ) -> None:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        if not verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")
        user.password_hash = hash_password(new_password)
        await self.db.commit()
        logger.info("auth.password_changed", user_id=str(user_id))

    async def update_profile(
        self,
        user_id: uuid.UUID,
        name: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        if name is not None:
            user.name = name
        if avatar is not None:
            user.avatar = avatar
        await self.db.commit()
        return user

    async def _has_pending_invite(self, email: str) -> bool:
        result = await self.db.execute(
            select(CompanyInvite.id).where(
                CompanyInvite.email == email,
                CompanyInvite.accepted_at.is_(None),
                CompanyInvite.expires_at > utcnow(),
            )
        )
        return result.first() is not None

    async def _start_session(
        self,
        user: User,
        preferred_company_id: Optional[uuid.UUID],
        method: str,
    ) -> Session:
        company_id = None
        if preferred_company_id is not None:
            membership = await self.resolver.load_membership(user.id, preferred_company_id)
            if membership is not None:
                company_id = membership.id
        session = await self.sessions.create_session(user.id, company_id)
        await self.audit.append(
            USER_LOGIN,
            "user",
            user.id,
            user_id=user.id,
            company_id=company_id,
            data={"method": method},
        )
        return session
