"""App API — /apps and /apps/{app_slug}.

Learn: Same contract as workspaces: AppStage attaches the app (scoped to
the active company) before the handler runs.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.api.responses import message_response, success_response
from tenantry.auth.dependencies import require_app, require_company, require_role
from tenantry.auth.identity import CurrentUser
from tenantry.db.engine import get_db
from tenantry.pipeline.context import AppContext
from tenantry.schemas.workspace import AppCreate, AppRead, AppUpdate
from tenantry.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/apps")


def _svc(db: AsyncSession = Depends(get_db)) -> WorkspaceService:
    return WorkspaceService(db)


@router.get("")
async def list_apps(
    user: CurrentUser = Depends(require_company),
    svc: WorkspaceService = Depends(_svc),
):
    apps = await svc.list_apps(user.company.id)
    return success_response([AppRead.model_validate(a) for a in apps])


@router.post("", status_code=201)
async def create_app(
    body: AppCreate,
    user: CurrentUser = Depends(require_company),
    svc: WorkspaceService = Depends(_svc),
):
    app = await svc.create_app(
        user.company.id,
        user.id,
        body.name,
        workspace_id=body.workspace_id,
        slug=body.slug,
        icon=body.icon,
        description=body.description,
    )
    return success_response(AppRead.model_validate(app))


@router.get("/{app_slug}")
async def get_app(app: AppContext = Depends(require_app)):
    return success_response(AppRead.model_validate(app.model_dump()))


@router.put("/{app_slug}")
async def update_app(
    body: AppUpdate,
    app: AppContext = Depends(require_app),
    user: CurrentUser = Depends(require_company),
    svc: WorkspaceService = Depends(_svc),
):
    updated = await svc.update_app(app.id, app.company_id, user.id, body.model_dump())
    return success_response(AppRead.model_validate(updated))


@router.delete("/{app_slug}")
async def delete_app(
    app: AppContext = Depends(require_app),
    user: CurrentUser = Depends(require_role("owner", "admin")),
    svc: WorkspaceService = Depends(_svc),
):
    await svc.delete_app(app.id, app.company_id, user.id)
    return message_response("App deleted")
