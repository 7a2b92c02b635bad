"""Company API — tenancy, members and invites.

Learn: /companies/current always means the session's active company, so
none of these routes take a company id in the path. The one place a raw
company id comes in (switch) is checked against memberships before the
session is touched.

The invite preview is the one public route here; the pipeline lets
GET /companies/invites/{code} through without a session.
"""

import uuid

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.api.cookies import clear_company_cookie, set_company_cookie
from tenantry.api.responses import message_response, success_response
from tenantry.auth.dependencies import require_auth, require_company, require_role
from tenantry.auth.identity import CurrentUser
from tenantry.db.engine import get_db
from tenantry.schemas.company import (
    CompanyCreate,
    CompanyRead,
    CompanyUpdate,
    CompanyWithRole,
    InviteAccept,
    InviteCreate,
    InvitePreview,
    InviteRead,
    MemberRead,
    SwitchCompanyRequest,
)
from tenantry.services.company_service import CompanyService
from tenantry.services.email_service import EmailTransport, deliver, get_transport, invite_message

router = APIRouter(prefix="/companies")


def _svc(db: AsyncSession = Depends(get_db)) -> CompanyService:
    return CompanyService(db)


# ─── Companies ──────────────────────────────────────────

@router.get("")
async def list_companies(
    user: CurrentUser = Depends(require_auth),
    svc: CompanyService = Depends(_svc),
):
    rows = await svc.list_for_user(user.id)
    data = [
        CompanyWithRole(**CompanyRead.model_validate(c).model_dump(), role=role)
        for c, role in rows
    ]
    return success_response(data, {"active_company_id": user.company.id if user.company else None})


@router.post("", status_code=201)
async def create_company(
    body: CompanyCreate,
    response: Response,
    user: CurrentUser = Depends(require_auth),
    svc: CompanyService = Depends(_svc),
):
    """Create a company; the caller becomes its owner and switches to it."""
    company = await svc.create_company(
        user, body.name, description=body.description, logo=body.logo, slug=body.slug
    )
    set_company_cookie(response, company.id)
    return success_response(
        CompanyWithRole(**CompanyRead.model_validate(company).model_dump(), role="owner")
    )


@router.post("/switch")
async def switch_company(
    body: SwitchCompanyRequest,
    response: Response,
    user: CurrentUser = Depends(require_auth),
    svc: CompanyService = Depends(_svc),
):
    membership = await svc.switch_company(user, body.company_id)
    set_company_cookie(response, membership.id)
    return success_response(membership, {"message": "Company switched"})


@router.get("/current")
async def get_current_company(
    user: CurrentUser = Depends(require_company),
    svc: CompanyService = Depends(_svc),
):
    company = await svc.get_company(user.company.id)
    return success_response(
        CompanyWithRole(**CompanyRead.model_validate(company).model_dump(), role=user.company.role)
    )


@router.put("/current")
async def update_current_company(
    body: CompanyUpdate,
    user: CurrentUser = Depends(require_role("owner", "admin")),
    svc: CompanyService = Depends(_svc),
):
    company = await svc.update_company(
        user, name=body.name, description=body.description, logo=body.logo
    )
    return success_response(CompanyRead.model_validate(company))


@router.delete("/current")
async def delete_current_company(
    response: Response,
    user: CurrentUser = Depends(require_company),
    svc: CompanyService = Depends(_svc),
):
    await svc.delete_company(user)
    clear_company_cookie(response)
    return message_response("Company deleted")


# ─── Members / invites ──────────────────────────────────

@router.get("/current/members")
async def list_members(
    user: CurrentUser = Depends(require_company),
    svc: CompanyService = Depends(_svc),
):
    rows = await svc.list_members(user.company.id)
    return success_response([
        MemberRead(
            user_id=u.id,
            email=u.email,
            name=u.name,
            role=m.role,
            joined_at=m.created_at,
        )
        for m, u in rows
    ])


@router.post("/current/invites", status_code=201)
async def create_invite(
    body: InviteCreate,
    user: CurrentUser = Depends(require_company),
    svc: CompanyService = Depends(_svc),
    transport: EmailTransport = Depends(get_transport),
):
    invite = await svc.create_invite(user, body.email, body.role)
    token = await svc.issue_invite_link(invite)
    await deliver(
        invite_message(
            invite.email, user.company.name, invite.invite_code, user.name or user.email, token
        ),
        transport,
    )
    return success_response(InviteRead.model_validate(invite))


@router.get("/current/invites")
async def list_invites(
    user: CurrentUser = Depends(require_role("owner", "admin")),
    svc: CompanyService = Depends(_svc),
):
    invites = await svc.list_pending_invites(user.company.id)
    return success_response([InviteRead.model_validate(i) for i in invites])


@router.post("/current/invites/{invite_id}/resend")
async def resend_invite(
    invite_id: uuid.UUID,
    user: CurrentUser = Depends(require_role("owner", "admin")),
    svc: CompanyService = Depends(_svc),
    transport: EmailTransport = Depends(get_transport),
):
    invite = await svc.get_pending_invite(user.company.id, invite_id)
    inviter = await svc.inviter_name(invite) or user.name or user.email
    token = await svc.issue_invite_link(invite)
    await deliver(
        invite_message(invite.email, user.company.name, invite.invite_code, inviter, token),
        transport,
    )
    return message_response("Invite email resent")


@router.get("/invites/{code}")
async def preview_invite(code: str, svc: CompanyService = Depends(_svc)):
    """Public: who the invite is for and which company it joins."""
    invite, company = await svc.preview_invite(code)
    return success_response(
        InvitePreview(email=invite.email, company_name=company.name, role=invite.role)
    )


@router.post("/invites/accept")
async def accept_invite(
    body: InviteAccept,
    response: Response,
    user: CurrentUser = Depends(require_auth),
    svc: CompanyService = Depends(_svc),
):
    company = await svc.accept_invite(user, body.code)
    set_company_cookie(response, company.id)
    return success_response(CompanyRead.model_validate(company), {"message": "Invite accepted"})
