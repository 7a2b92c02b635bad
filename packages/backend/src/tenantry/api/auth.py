"""Auth API — registration, password and magic-link login, profile.

Learn: Everything under /api/auth that a signed-out browser needs
(register, login, magic-link send/verify, logout) is on the public path
allowlist. Public send only issues login links; verify_email links come
from /verify-email/send and invite links from the company invite flow.
The rest (me, profile, password, logout-all, verify-email/send) goes through the
context pipeline like any other route and reads the user from it.
"""

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.api.cookies import (
    clear_session_cookie,
    preferred_company_id,
    set_company_cookie,
    set_session_cookie,
)
from tenantry.api.responses import message_response, success_response
from tenantry.auth.dependencies import require_auth
from tenantry.auth.identity import CurrentUser
from tenantry.db.engine import get_db
from tenantry.pipeline.stages import get_session_token
from tenantry.schemas.auth import (
    AuthResult,
    CompanySummary,
    LoginRequest,
    MagicLinkSendRequest,
    MagicLinkVerifyRequest,
    MeRead,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    SessionRead,
    UserRead,
)
from tenantry.services.auth_service import AuthService
from tenantry.services.email_service import (
    EmailTransport,
    get_transport,
    send_magic_link_email,
)

router = APIRouter(prefix="/auth")


def _svc(db: AsyncSession = Depends(get_db)) -> AuthService:
    return AuthService(db)


def _signed_in(response: Response, user, session) -> dict:
    set_session_cookie(response, session)
    if session.company_id is not None:
        set_company_cookie(response, session.company_id)
    return success_response(
        AuthResult(
            user=UserRead.model_validate(user),
            session=SessionRead.model_validate(session),
        )
    )


# ─── Password auth ──────────────────────────────────────

@router.post("/register", status_code=201)
async def register(body: RegisterRequest, response: Response, svc: AuthService = Depends(_svc)):
    user, session = await svc.register(body.email, body.password, body.name)
    return _signed_in(response, user, session)


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    svc: AuthService = Depends(_svc),
):
    user, session = await svc.login_with_password(
        body.email, body.password, preferred_company_id(request)
    )
    return _signed_in(response, user, session)


# ─── Magic links ────────────────────────────────────────

@router.post("/magic-link/send")
async def send_magic_link(
    body: MagicLinkSendRequest,
    svc: AuthService = Depends(_svc),
    transport: EmailTransport = Depends(get_transport),
):
    """Issue a link and email it.

    Always answers the same way whether or not the address has an account.
    """
    link = await svc.request_magic_link(body.email, "login")
    await send_magic_link_email(link.email, link.token, link.type, transport)
    return message_response("Magic link sent to your email")


@router.post("/verify-email/send")
async def send_verification_email(
    user: CurrentUser = Depends(require_auth),
    svc: AuthService = Depends(_svc),
    transport: EmailTransport = Depends(get_transport),
):
    """Email the signed-in user a link that verifies their address."""
    link = await svc.request_magic_link(user.email, "verify_email")
    await send_magic_link_email(link.email, link.token, link.type, transport)
    return message_response("Verification email sent")


@router.post("/magic-link/verify")
async def verify_magic_link(
    body: MagicLinkVerifyRequest,
    request: Request,
    response: Response,
    svc: AuthService = Depends(_svc),
):
    user, session, link = await svc.verify_magic_link(
        body.token, body.type, preferred_company_id(request)
    )
    if session is None:
        return success_response(
            AuthResult(user=UserRead.model_validate(user)),
            {"message": "Email verified"},
        )
    return _signed_in(response, user, session)


# ─── Session ────────────────────────────────────────────

@router.post("/logout")
async def logout(request: Request, response: Response, svc: AuthService = Depends(_svc)):
    await svc.logout(get_session_token(request))
    clear_session_cookie(response)
    return message_response("Logged out successfully")


@router.post("/logout-all")
async def logout_all(
    response: Response,
    user: CurrentUser = Depends(require_auth),
    svc: AuthService = Depends(_svc),
):
    removed = await svc.logout_everywhere(user.id)
    clear_session_cookie(response)
    return message_response("Logged out of all sessions", {"sessions": removed})


@router.get("/me")
async def me(user: CurrentUser = Depends(require_auth)):
    company = (
        CompanySummary(**user.company.model_dump()) if user.company else None
    )
    return success_response(
        MeRead(
            id=user.id,
            email=user.email,
            name=user.name,
            avatar=user.avatar,
            email_verified_at=user.email_verified_at,
            company=company,
        )
    )


@router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    user: CurrentUser = Depends(require_auth),
    svc: AuthService = Depends(_svc),
):
    updated = await svc.update_profile(user.id, name=body.name, avatar=body.avatar)
    return success_response(UserRead.model_validate(updated))


@router.put("/password")
async def change_password(
    body: PasswordChange,
    user: CurrentUser = Depends(require_auth),
    svc: AuthService = Depends(_svc),
):
    await svc.change_password(user.id, body.current_password, body.new_password)
    return message_response("Password updated successfully")
