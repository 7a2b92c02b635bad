"""Company service — companies, memberships and invites.

Learn: A company is the tenant root. Creating one makes the creator its
owner and moves their session into it. Deleting one is owner-only and
removes everything scoped to it explicitly, child tables first, so the
behaviour is the same on databases that don't enforce ON DELETE CASCADE.

Invite acceptance mirrors magic-link redemption: one conditional UPDATE
(not accepted, not expired, addressed to this user) decides who wins, and
the failure reason is only worked out afterwards.
"""

import uuid
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.audit.actions import (
    COMPANY_CREATED,
    COMPANY_DELETED,
    COMPANY_SWITCHED,
    COMPANY_UPDATED,
    INVITE_ACCEPTED,
    INVITE_CREATED,
)
from tenantry.audit.store import AuditStore
from tenantry.auth.identity import CompanyContext, CurrentUser, IdentityResolver
from tenantry.auth.magic_links import MagicLinkManager
from tenantry.auth.sessions import SessionManager
from tenantry.auth.tokens import generate_invite_code
from tenantry.config import settings
from tenantry.db.models import (
    App,
    Company,
    CompanyInvite,
    CompanyMember,
    DataRow,
    DataTable,
    DataTableView,
    Session,
    User,
    Workspace,
)
from tenantry.db.types import utcnow
from tenantry.errors import AlreadyUsed, Conflict, Expired, Forbidden, NotFound
from tenantry.utils.slug import insert_with_unique_slug

logger = structlog.get_logger()

INVITE_ROLES = ("admin", "member")


class CompanyService:
    """Business logic for companies and their members."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sessions = SessionManager(db)
        self.resolver = IdentityResolver(db, self.sessions)
        self.audit = AuditStore(db)

    # ─── Companies ──────────────────────────────────────

    async def list_for_user(self, user_id: uuid.UUID) -> list[tuple[Company, str]]:
        result = await self.db.execute(
            select(Company, CompanyMember.role)
            .join(CompanyMember, CompanyMember.company_id == Company.id)
            .where(CompanyMember.user_id == user_id)
            .order_by(Company.name)
        )
        return [(company, role) for company, role in result.all()]

    async def create_company(
        self,
        user: CurrentUser,
        name: str,
        description: Optional[str] = None,
        logo: Optional[str] = None,
        slug: Optional[str] = None,
    ) -> Company:
        """Create a company, make the caller its owner and switch to it."""
        company = await insert_with_unique_slug(
            self.db,
            Company,
            lambda s: Company(
                name=name,
                slug=s,
                description=description,
                logo=logo,
                created_by=user.id,
            ),
            name,
            slug=slug,
        )
        self.db.add(CompanyMember(company_id=company.id, user_id=user.id, role="owner"))
        await self.db.flush()
        await self._activate(user, company.id)
        await self.audit.append(
            COMPANY_CREATED,
            "company",
            company.id,
            company_id=company.id,
            user_id=user.id,
            data={"name": name, "slug": company.slug},
        )
        await self.db.commit()
        logger.info("company.created", company_id=str(company.id), slug=company.slug)
        return company

    async def get_company(self, company_id: uuid.UUID) -> Company:
        company = await self.db.get(Company, company_id)
        if company is None:
            raise NotFound("Company not found")
        return company

    async def update_company(
        self,
        user: CurrentUser,
        name: Optional[str] = None,
        description: Optional[str] = None,
        logo: Optional[str] = None,
    ) -> Company:
        company = await self.get_company(user.company.id)
        changes = {}
        if name is not None:
            company.name = name
            changes["name"] = name
        if description is not None:
            company.description = description
            changes["description"] = description
        if logo is not None:
            company.logo = logo
            changes["logo"] = logo
        await self.audit.append(
            COMPANY_UPDATED, "company", company.id,
            company_id=company.id, user_id=user.id, data=changes,
        )
        await self.db.commit()
        return company

    async def delete_company(self, user: CurrentUser) -> None:
        """Delete the active company and everything scoped to it (owner only)."""
        if not user.has_role("owner"):
            raise Forbidden("Only the company owner can delete the company")
        company_id = user.company.id

        for model in (DataRow, DataTableView, DataTable, App, Workspace, CompanyInvite, CompanyMember):
            await self.db.execute(delete(model).where(model.company_id == company_id))
        await self.db.execute(
            update(Session)
            .where(Session.company_id == company_id)
            .values(company_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(delete(Company).where(Company.id == company_id))
        await self.audit.append(
            COMPANY_DELETED, "company", company_id,
            company_id=company_id, user_id=user.id,
        )
        await self.db.commit()
        logger.info("company.deleted", company_id=str(company_id), user_id=str(user.id))

    async def switch_company(self, user: CurrentUser, company_id: uuid.UUID) -> CompanyContext:
        membership = await self._activate(user, company_id)
        await self.db.commit()
        return membership

    async def _activate(self, user: CurrentUser, company_id: uuid.UUID) -> CompanyContext:
        """Point the caller's session at company_id after a membership check.

        The dev identity has no session row; its switch is a no-op here.
        """
        if user.session.id.int == 0:
            membership = await self.resolver.load_membership(user.id, company_id)
            if membership is None:
                raise Forbidden("You are not a member of this company")
        else:
            membership = await self.resolver.switch_company(user, company_id)
        await self.audit.append(
            COMPANY_SWITCHED, "company", company_id,
            company_id=company_id, user_id=user.id,
        )
        return membership

    # ─── Members ────────────────────────────────────────

    async def list_members(self, company_id: uuid.UUID) -> list[tuple[CompanyMember, User]]:
        result = await self.db.execute(
            select(CompanyMember, User)
            .join(User, User.id == CompanyMember.user_id)
            .where(CompanyMember.company_id == company_id)
            .order_by(CompanyMember.created_at)
        )
        return [(member, u) for member, u in result.all()]

    async def is_member(self, company_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        result = await self.db.execute(
            select(CompanyMember.id).where(
                CompanyMember.company_id == company_id,
                CompanyMember.user_id == user_id,
            )
        )
        return result.first() is not None

    # ─── Invites ────────────────────────────────────────

    async def create_invite(
        self,
        user: CurrentUser,
        email: str,
        role: str = "member",
    ) -> CompanyInvite:
        if not user.has_role("owner", "admin"):
            raise Forbidden("Only owners and admins can invite members")
        if role not in INVITE_ROLES:
            raise Forbidden(f"Cannot invite with role '{role}'")

        email = email.strip().lower()
        existing = await self.db.execute(
            select(User.id)
            .join(CompanyMember, CompanyMember.user_id == User.id)
            .where(CompanyMember.company_id == user.company.id, User.email == email)
        )
        if existing.first() is not None:
            raise Conflict("User is already a member of this company")

        invite = CompanyInvite(
            company_id=user.company.id,
            email=email,
            role=role,
            invite_code=generate_invite_code(),
            invited_by=user.id,
            expires_at=utcnow() + timedelta(days=settings.invite_ttl_days),
        )
        self.db.add(invite)
        await self.db.flush()
        await self.audit.append(
            INVITE_CREATED, "invite", invite.id,
            company_id=user.company.id, user_id=user.id,
            data={"email": email, "role": role},
        )
        await self.db.commit()
        return invite

    async def list_pending_invites(self, company_id: uuid.UUID) -> list[CompanyInvite]:
        result = await self.db.execute(
            select(CompanyInvite)
            .where(
                CompanyInvite.company_id == company_id,
                CompanyInvite.accepted_at.is_(None),
                CompanyInvite.expires_at > utcnow(),
            )
            .order_by(CompanyInvite.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_pending_invite(
        self, company_id: uuid.UUID, invite_id: uuid.UUID
    ) -> CompanyInvite:
        result = await self.db.execute(
            select(CompanyInvite).where(
                CompanyInvite.id == invite_id,
                CompanyInvite.company_id == company_id,
                CompanyInvite.accepted_at.is_(None),
                CompanyInvite.expires_at > utcnow(),
            )
        )
        invite = result.scalars().first()
        if invite is None:
            raise NotFound("Invitation not found or has expired")
        return invite

    async def preview_invite(self, code: str) -> tuple[CompanyInvite, Company]:
        """Pending invite and its company, for the public invite page."""
        result = await self.db.execute(
            select(CompanyInvite, Company)
            .join(Company, Company.id == CompanyInvite.company_id)
            .where(
                CompanyInvite.invite_code == code,
                CompanyInvite.accepted_at.is_(None),
                CompanyInvite.expires_at > utcnow(),
            )
        )
        row = result.first()
        if row is None:
            raise NotFound("Invitation not found or has expired")
        return row[0], row[1]

    async def inviter_name(self, invite: CompanyInvite) -> Optional[str]:
        if invite.invited_by is None:
            return None
        inviter = await self.db.get(User, invite.invited_by)
        if inviter is None:
            return None
        return inviter.name or inviter.email

    async def issue_invite_link(self, invite: CompanyInvite) -> str:
        """Magic link that lets an invited address create its account."""
        link = await MagicLinkManager(self.db).create_magic_link(invite.email, "invite")
        await self.db.commit()
        return link.token

    async def accept_invite(self, user: CurrentUser, code: str) -> Company:
        """Redeem an invite code for the calling user and switch to the company.

        Raises NotFound (unknown code or addressed to someone else),
        AlreadyUsed, Expired, or Conflict if the user is already a member.
        """
        result = await self.db.execute(
            select(CompanyInvite).where(CompanyInvite.invite_code == code)
        )
        invite = result.scalars().first()
        if invite is None or invite.email != user.email.lower():
            raise NotFound("Invalid invite code")
        if await self.is_member(invite.company_id, user.id):
            raise Conflict("You are already a member of this company")

        now = utcnow()
        claimed = await self.db.execute(
            update(CompanyInvite)
            .where(
                CompanyInvite.id == invite.id,
                CompanyInvite.accepted_at.is_(None),
                CompanyInvite.expires_at > now,
            )
            .values(accepted_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            await self.db.refresh(invite)
            if invite.accepted_at is not None:
                raise AlreadyUsed("Invite has already been accepted")
            raise Expired("Invite has expired")

        self.db.add(CompanyMember(company_id=invite.company_id, user_id=user.id, role=invite.role))
        await self.db.flush()
        await self.audit.append(
            INVITE_ACCEPTED, "invite", invite.id,
            company_id=invite.company_id, user_id=user.id,
            data={"role": invite.role},
        )
        await self._activate(user, invite.company_id)
        await self.db.commit()
        logger.info(
            "invite.accepted",
            company_id=str(invite.company_id),
            user_id=str(user.id),
        )
        return await self.get_company(invite.company_id)
