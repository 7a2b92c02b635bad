"""FastAPI dependencies over the request context.

Learn: The context pipeline middleware has already authenticated the
request and attached the workspace/app. These dependencies only read what
it attached — they never touch the session table or re-check tenancy.
Missing context on a route that needs it means the route is wired wrong,
and the request is rejected rather than served.
"""

from fastapi import Depends, Request

from tenantry.auth.identity import CurrentUser
from tenantry.errors import Forbidden, Unauthorized
from tenantry.pipeline.context import AppContext, RequestContext, WorkspaceContext


def get_context(request: Request) -> RequestContext:
    ctx = getattr(request.state, "context", None)
    if ctx is None:
        return RequestContext()
    return ctx


def require_auth(ctx: RequestContext = Depends(get_context)) -> CurrentUser:
    """The authenticated user (401 if none)."""
    if ctx.user is None:
        raise Unauthorized("Unauthorized - Please log in")
    return ctx.user


def require_company(user: CurrentUser = Depends(require_auth)) -> CurrentUser:
    """The authenticated user with an active company (403 if none)."""
    if user.company is None:
        raise Forbidden("No company selected - Please select or create a company")
    return user


def require_role(*roles: str):
    """Dependency factory: active company role must be one of roles."""

    def _check(user: CurrentUser = Depends(require_company)) -> CurrentUser:
        if not user.has_role(*roles):
            raise Forbidden(f"Requires role: {', '.join(roles)}")
        return user

    return _check


def require_workspace(ctx: RequestContext = Depends(get_context)) -> WorkspaceContext:
    if ctx.workspace is None:
        raise RuntimeError("Workspace context missing; route not covered by WorkspaceStage")
    return ctx.workspace


def require_app(ctx: RequestContext = Depends(get_context)) -> AppContext:
    if ctx.app is None:
        raise RuntimeError("App context missing; route not covered by AppStage")
    return ctx.app
