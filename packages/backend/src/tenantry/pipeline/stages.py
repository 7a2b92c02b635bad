"""Pipeline stages: auth → workspace → app.

Learn: Each stage matches request paths, does its lookups, and attaches
one entity to the RequestContext. Any failure raises an AppError and the
remaining stages never run (fail closed). The tenant check is part of the
lookup itself — rows are loaded by (company_id, slug) — so a resource in
another company is simply "not found", exactly like one that doesn't exist.
"""

import asyncio
import re
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request

from tenantry.auth.identity import IdentityResolver
from tenantry.config import settings
from tenantry.db.models import App, Workspace
from tenantry.errors import Forbidden, LookupTimeout, NotFound, Unauthorized
from tenantry.pipeline.context import AppContext, RequestContext, WorkspaceContext

logger = structlog.get_logger()


class PipelineConfigError(Exception):
    """Stage list violates its declared dependencies."""


def get_session_token(request: Request) -> Optional[str]:
    """Session token from the session cookie, else a Bearer header."""
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


class Stage:
    """Base stage.

    provides: context names this stage attaches.
    requires: names that must be attached before this stage runs.
    optional: names this stage reads if present; they must still come
        from an earlier stage so ordering stays checkable.
    """

    name: str = "stage"
    provides: tuple[str, ...] = ()
    requires: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    patterns: tuple[re.Pattern, ...] = ()

    def match(self, path: str, method: Optional[str] = None) -> Optional[dict[str, str]]:
        for pattern in self.patterns:
            m = pattern.match(path)
            if m:
                return m.groupdict()
        return None

    async def run(
        self,
        request: Request,
        ctx: RequestContext,
        db: AsyncSession,
        params: dict[str, str],
    ) -> None:
        raise NotImplementedError


def _compile_route_template(template: str) -> tuple[str, re.Pattern]:
    """"GET /a/{x}" -> ("GET", ^/a/[^/]+$). A parameter is one path segment."""
    method, path = template.split(" ", 1)
    parts = re.split(r"(\{\w+\})", path)
    regex = "".join("[^/]+" if p.startswith("{") else re.escape(p) for p in parts)
    return method.upper(), re.compile(f"^{regex}$")


class AuthStage(Stage):
    """Resolve the CurrentUser for every non-public path."""

    name = "auth"
    provides = ("user",)

    def __init__(
        self,
        public_paths: Optional[list[str]] = None,
        timeout: Optional[float] = None,
        public_routes: Optional[list[str]] = None,
    ):
        self.public_paths = frozenset(
            settings.public_paths if public_paths is None else public_paths
        )
        self.public_routes = tuple(
            _compile_route_template(t)
            for t in (settings.public_route_templates if public_routes is None else public_routes)
        )
        self.timeout = settings.identity_timeout_seconds if timeout is None else timeout

    def match(self, path: str, method: Optional[str] = None) -> Optional[dict[str, str]]:
        # Exact match only: /auth/verify is public, /auth/verify/x is not.
        if path in self.public_paths:
            return None
        for route_method, pattern in self.public_routes:
            if method == route_method and pattern.match(path):
                return None
        return {}

    async def run(self, request, ctx, db, params) -> None:
        resolver = IdentityResolver(db)
        token = get_session_token(request)

        try:
            if token:
                user = await asyncio.wait_for(resolver.resolve(token), self.timeout)
            elif settings.insecure_dev_identity:
                user = await asyncio.wait_for(
                    resolver.resolve_dev_identity(), self.timeout
                )
            else:
                user = None
        except asyncio.TimeoutError:
            logger.warning("pipeline.identity_timeout", path=request.url.path)
            user = None

        if user is None:
            raise Unauthorized("Authentication required")
        ctx.attach("user", user)


def _require_company_id(ctx: RequestContext):
    user = ctx.user
    if user.company is None:
        raise Forbidden("No company selected. Please select a company first.")
    return user.company.id


class LookupStage(Stage):
    """A stage that loads one row; a slow lookup fails the request."""

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = settings.lookup_timeout_seconds if timeout is None else timeout

    async def lookup(self, request, db, query):
        try:
            result = await asyncio.wait_for(db.execute(query), self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "pipeline.lookup_timeout", stage=self.name, path=request.url.path
            )
            raise LookupTimeout(f"Timed out loading {self.name}")
        return result.scalars().first()


class WorkspaceStage(LookupStage):
    """Load /api/workspaces/{slug}/... scoped to the active company."""

    name = "workspace"
    provides = ("workspace",)
    requires = ("user",)
    patterns = (re.compile(r"^/api/workspaces/(?P<workspace_slug>[^/]+)"),)

    async def run(self, request, ctx, db, params) -> None:
        company_id = _require_company_id(ctx)
        slug = params["workspace_slug"]
        workspace = await self.lookup(
            request,
            db,
            select(Workspace).where(
                Workspace.company_id == company_id,
                Workspace.slug == slug,
            ),
        )
        if workspace is None:
            raise NotFound(f"Workspace '{slug}' not found")
        ctx.attach("workspace", WorkspaceContext.model_validate(workspace))


class AppStage(LookupStage):
    """Load /api/apps/{slug}/... (or nested under a workspace)."""

    name = "app"
    provides = ("app",)
    requires = ("user",)
    optional = ("workspace",)
    patterns = (
        re.compile(r"^/api/apps/(?P<app_slug>[^/]+)"),
        re.compile(r"^/api/workspaces/[^/]+/apps/(?P<app_slug>[^/]+)"),
    )

    async def run(self, request, ctx, db, params) -> None:
        company_id = _require_company_id(ctx)
        slug = params["app_slug"]
        query = select(App).where(App.company_id == company_id, App.slug == slug)
        if ctx.workspace is not None:
            query = query.where(App.workspace_id == ctx.workspace.id)
        app = await self.lookup(request, db, query)
        if app is None:
            raise NotFound(f"App '{slug}' not found")
        ctx.attach("app", AppContext.model_validate(app))


class Pipeline:
    """An ordered, dependency-checked list of stages."""

    def __init__(self, stages: list[Stage]):
        provided: set[str] = set()
        for stage in stages:
            missing = [
                n for n in (*stage.requires, *stage.optional) if n not in provided
            ]
            if missing:
                raise PipelineConfigError(
                    f"Stage '{stage.name}' needs {missing} from an earlier stage"
                )
            provided.update(stage.provides)
        self.stages = tuple(stages)

    async def run(self, request: Request, db: AsyncSession) -> RequestContext:
        ctx = RequestContext()
        path = request.url.path
        for stage in self.stages:
            params = stage.match(path, request.method)
            if params is None:
                continue
            if any(n not in ctx for n in stage.requires):
                # e.g. a public path that also matches a resource pattern
                raise Unauthorized("Authentication required")
            await stage.run(request, ctx, db, params)
        return ctx


def build_pipeline() -> Pipeline:
    return Pipeline([AuthStage(), WorkspaceStage(), AppStage()])
