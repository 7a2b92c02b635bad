"""Workspace API.

Learn: For /workspaces/{workspace_slug}/... the context pipeline has
already loaded the workspace inside the caller's company and attached it.
Handlers take it from require_workspace and never look it up themselves;
the path parameter only exists so the route matches.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.api.responses import message_response, success_response
from tenantry.auth.dependencies import require_app, require_company, require_role, require_workspace
from tenantry.auth.identity import CurrentUser
from tenantry.db.engine import get_db
from tenantry.pipeline.context import AppContext, WorkspaceContext
from tenantry.schemas.workspace import (
    AppCreate,
    AppRead,
    WorkspaceCreate,
    WorkspaceRead,
    WorkspaceUpdate,
)
from tenantry.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/workspaces")


def _svc(db: AsyncSession = Depends(get_db)) -> WorkspaceService:
    return WorkspaceService(db)


@router.get("")
async def list_workspaces(
    user: CurrentUser = Depends(require_company),
    svc: WorkspaceService = Depends(_svc),
):
    workspaces = await svc.list_workspaces(user.company.id)
    return success_response([WorkspaceRead.model_validate(w) for w in workspaces])


@router.post("", status_code=201)
async def create_workspace(
    body: WorkspaceCreate,
    user: CurrentUser = Depends(require_company),
    svc: WorkspaceService = Depends(_svc),
):
    workspace = await svc.create_workspace(
        user.company.id,
        user.id,
        body.name,
        slug=body.slug,
        icon=body.icon,
        description=body.description,
    )
    return success_response(WorkspaceRead.model_validate(workspace))


@router.get("/{workspace_slug}")
async def get_workspace(workspace: WorkspaceContext = Depends(require_workspace)):
    return success_response(WorkspaceRead.model_validate(workspace.model_dump()))


@router.put("/{workspace_slug}")
async def update_workspace(
    body: WorkspaceUpdate,
    workspace: WorkspaceContext = Depends(require_workspace),
    user: CurrentUser = Depends(require_company),
    svc: WorkspaceService = Depends(_svc),
):
    updated = await svc.update_workspace(
        workspace.id, workspace.company_id, user.id, body.model_dump()
    )
    return success_response(WorkspaceRead.model_validate(updated))


@router.delete("/{workspace_slug}")
async def delete_workspace(
    workspace: WorkspaceContext = Depends(require_workspace),
    user: CurrentUser = Depends(require_role("owner", "admin")),
    svc: WorkspaceService = Depends(_svc),
):
    await svc.delete_workspace(workspace.id, workspace.company_id, user.id)
    return message_response("Workspace deleted")


# ─── Apps inside a workspace ────────────────────────────

@router.get("/{workspace_slug}/apps")
async def list_workspace_apps(
    workspace: WorkspaceContext = Depends(require_workspace),
    svc: WorkspaceService = Depends(_svc),
):
    apps = await svc.list_apps(workspace.company_id, workspace.id)
    return success_response([AppRead.model_validate(a) for a in apps])


@router.post("/{workspace_slug}/apps", status_code=201)
async def create_workspace_app(
    body: AppCreate,
    workspace: WorkspaceContext = Depends(require_workspace),
    user: CurrentUser = Depends(require_company),
    svc: WorkspaceService = Depends(_svc),
):
    app = await svc.create_app(
        workspace.company_id,
        user.id,
        body.name,
        workspace_id=workspace.id,
        slug=body.slug,
        icon=body.icon,
        description=body.description,
    )
    return success_response(AppRead.model_validate(app))


@router.get("/{workspace_slug}/apps/{app_slug}")
async def get_workspace_app(app: AppContext = Depends(require_app)):
    return success_response(AppRead.model_validate(app.model_dump()))
