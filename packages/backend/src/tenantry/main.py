"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis, database engine).
Middleware, exception handlers and routers are all registered here.

Request flow through the middleware stack:
RequestId → Security → RateLimit → CORS → ContextPipeline → handler
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tenantry import __version__
from tenantry.api import api_router
from tenantry.api.responses import register_exception_handlers
from tenantry.cache import close_redis, init_redis
from tenantry.config import settings
from tenantry.db.engine import async_session_factory, engine
from tenantry.middleware.context import ContextPipelineMiddleware
from tenantry.middleware.rate_limit import RateLimitMiddleware
from tenantry.middleware.request_id import RequestIdMiddleware
from tenantry.middleware.security import SecurityHeadersMiddleware
from tenantry.pipeline.stages import Pipeline, build_pipeline

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "tenantry.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )
    if settings.insecure_dev_identity:
        logger.warning("tenantry.insecure_dev_identity_enabled")

    try:
        await init_redis()
        logger.info("tenantry.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis is optional; without it requests are not rate limited.
        logger.warning("tenantry.redis_unavailable", error=str(e))

    yield

    logger.info("tenantry.shutdown")
    await close_redis()
    await engine.dispose()


def create_app(pipeline: Pipeline | None = None) -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Tenantry",
        description="Multi-tenant identity, request context and scoped data access",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.session_factory = async_session_factory

    # Starlette runs middleware in reverse order of registration, so the
    # pipeline (registered first) is innermost.
    app.add_middleware(ContextPipelineMiddleware, pipeline=pipeline or build_pipeline())
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: tenantry.main:app)
app = create_app()
