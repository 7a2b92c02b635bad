"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: No router-level auth dependencies. The context pipeline middleware
authenticates every non-public path before routing, and handlers that need
a user or a tenant resource read it from the request context.
"""

from fastapi import APIRouter

from tenantry.api.apps import router as apps_router
from tenantry.api.audit_logs import router as audit_logs_router
from tenantry.api.auth import router as auth_router
from tenantry.api.companies import router as companies_router
from tenantry.api.health import router as health_router
from tenantry.api.tables import router as tables_router
from tenantry.api.workspaces import router as workspaces_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(companies_router, tags=["companies"])
api_router.include_router(workspaces_router, tags=["workspaces"])
api_router.include_router(apps_router, tags=["apps"])
api_router.include_router(tables_router, tags=["tables"])
api_router.include_router(audit_logs_router, tags=["audit"])
