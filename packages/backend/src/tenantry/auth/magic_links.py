"""Magic-link manager — issuance and one-time redemption.

Learn: A magic link is a single-use, purpose-scoped, time-limited token.
Redemption is one conditional UPDATE:

    UPDATE magic_links SET used_at = :now
    WHERE token = :token AND used_at IS NULL AND expires_at > :now

If it touched a row, this caller won; the database guarantees that two
concurrent redemptions cannot both match. Only when nothing matched do we
read the row back to explain why, and the three outcomes stay distinct:
never issued (or wrong purpose), expired, already used. Replays are
recorded in the audit log.
"""

from datetime import timedelta
from typing import Literal, Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.audit.actions import MAGIC_LINK_REPLAYED
from tenantry.audit.store import AuditStore
from tenantry.auth.tokens import generate_token
from tenantry.config import settings
from tenantry.db.models import MagicLink
from tenantry.db.types import utcnow
from tenantry.errors import AlreadyUsed, Expired, NotFound

logger = structlog.get_logger()

MagicLinkType = Literal["login", "invite", "verify_email"]
MAGIC_LINK_TYPES = ("login", "invite", "verify_email")


class MagicLinkNotFound(NotFound):
    """Token was never issued, or was issued for another purpose."""


class MagicLinkExpired(Expired):
    """Token exists but its expiry has passed."""


class MagicLinkAlreadyUsed(AlreadyUsed):
    """Token was already redeemed."""


class MagicLinkManager:
    """Owns the MagicLink table."""

    def __init__(self, db: AsyncSession, ttl: Optional[timedelta] = None):
        self.db = db
        self.ttl = ttl or timedelta(minutes=settings.magic_link_ttl_minutes)
        self.audit = AuditStore(db)

    async def create_magic_link(self, email: str, type: MagicLinkType) -> MagicLink:
        """Issue a new link.

        Outstanding links for the same email and purpose stay valid; each
        expires on its own.
        """
        if type not in MAGIC_LINK_TYPES:
            raise ValueError(f"Unknown magic link type: {type}")
        link = MagicLink(
            email=email.strip().lower(),
            token=generate_token(),
            type=type,
            expires_at=utcnow() + self.ttl,
        )
        self.db.add(link)
        await self.db.flush()
        logger.info("auth.magic_link_created", link_id=str(link.id), type=type)
        return link

    async def redeem(
        self,
        token: str,
        type: Optional[MagicLinkType] = None,
    ) -> MagicLink:
        """Mark a link used and return it.

        Raises MagicLinkNotFound, MagicLinkExpired or MagicLinkAlreadyUsed.
        A replay audit row is flushed, not committed; callers that want it
        kept commit before re-raising.
        """
        now = utcnow()
        conditions = [
            MagicLink.token == token,
            MagicLink.used_at.is_(None),
            MagicLink.expires_at > now,
        ]
        if type is not None:
            conditions.append(MagicLink.type == type)

        result = await self.db.execute(
            update(MagicLink)
            .where(*conditions)
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        link = await self._get_by_token(token)

        if result.rowcount == 1 and link is not None:
            logger.info("auth.magic_link_redeemed", link_id=str(link.id), type=link.type)
            return link

        if link is None or (type is not None and link.type != type):
            logger.info("auth.magic_link_not_found", type=type)
            raise MagicLinkNotFound("Invalid magic link")

        if link.used_at is not None:
            logger.warning(
                "auth.magic_link_replayed",
                link_id=str(link.id),
                type=link.type,
                used_at=link.used_at.isoformat(),
            )
            await self.audit.append(
                MAGIC_LINK_REPLAYED,
                "magic_link",
                link.id,
                data={"email": link.email, "type": link.type},
            )
            raise MagicLinkAlreadyUsed("Magic link has already been used")

        logger.info("auth.magic_link_expired", link_id=str(link.id))
        raise MagicLinkExpired("Magic link has expired")

    async def delete_expired_magic_links(self) -> int:
        result = await self.db.execute(
            delete(MagicLink).where(MagicLink.expires_at <= utcnow())
        )
        removed = result.rowcount or 0
        logger.info("auth.expired_magic_links_purged", count=removed)
        return removed

    async def _get_by_token(self, token: str) -> Optional[MagicLink]:
        result = await self.db.execute(
            select(MagicLink)
            .where(MagicLink.token == token)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()
