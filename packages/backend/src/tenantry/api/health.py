"""Health check endpoint.

Learn: Public GET that reports whether the database and Redis are
reachable. Redis being down is "degraded", not fatal: the app runs
without rate limiting.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from tenantry import __version__
from tenantry.cache import get_redis
from tenantry.db.engine import async_session_factory

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    checks = {"server": "ok", "version": __version__}

    session_factory = getattr(request.app.state, "session_factory", async_session_factory)
    try:
        async with session_factory() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"unavailable: {e}"

    status = "healthy" if checks["database"] == "ok" else "unhealthy"
    if status == "healthy" and checks["redis"] != "ok":
        status = "degraded"
    return {"status": status, **checks}
