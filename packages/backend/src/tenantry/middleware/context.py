"""Context pipeline middleware.

Learn: Runs the declared stage pipeline (auth → workspace → app) before any
route handler. The pipeline gets its own short-lived database session,
which is closed before the handler starts. A stage failure is rendered
here and the handler never runs:

- 401 for API clients, or a redirect to /auth/login?redirect=<path> for
  browsers asking for HTML
- 403 / 404 as error envelopes

Storage errors are not caught; they surface as 500s.
"""

from urllib.parse import urlencode

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from tenantry.api.responses import app_error_response
from tenantry.db.engine import async_session_factory
from tenantry.errors import AppError, Unauthorized
from tenantry.pipeline.stages import Pipeline, build_pipeline

logger = structlog.get_logger()

LOGIN_PATH = "/auth/login"


def _wants_html(request: Request) -> bool:
    if request.url.path.startswith("/api/"):
        return False
    return "text/html" in request.headers.get("accept", "")


class ContextPipelineMiddleware(BaseHTTPMiddleware):
    """Attach a validated RequestContext to request.state.context."""

    def __init__(self, app, pipeline: Pipeline | None = None):
        super().__init__(app)
        self.pipeline = pipeline or build_pipeline()

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS":
            return await call_next(request)

        factory = getattr(request.app.state, "session_factory", async_session_factory)
        try:
            async with factory() as db:
                ctx = await self.pipeline.run(request, db)
                # Persists sliding session renewal, if any.
                await db.commit()
        except AppError as exc:
            logger.info(
                "pipeline.rejected",
                path=request.url.path,
                status=exc.status_code,
                code=exc.code,
            )
            if isinstance(exc, Unauthorized) and _wants_html(request):
                target = request.url.path
                if request.url.query:
                    target = f"{target}?{request.url.query}"
                return RedirectResponse(
                    f"{LOGIN_PATH}?{urlencode({'redirect': target})}",
                    status_code=302,
                )
            return app_error_response(exc)

        request.state.context = ctx
        return await call_next(request)
