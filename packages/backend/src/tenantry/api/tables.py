"""Data table API — tables, rows, views and view queries under an app."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.api.responses import paginated_response, success_response
from tenantry.auth.dependencies import require_app, require_company
from tenantry.auth.identity import CurrentUser
from tenantry.db.engine import get_db
from tenantry.pipeline.context import AppContext
from tenantry.schemas.table import (
    RowCreate,
    RowRead,
    TableCreate,
    TableRead,
    ViewCreate,
    ViewQuery,
    ViewRead,
)
from tenantry.services.table_service import TableService

router = APIRouter(prefix="/apps/{app_slug}/tables")


def _svc(db: AsyncSession = Depends(get_db)) -> TableService:
    return TableService(db)


@router.get("")
async def list_tables(
    app: AppContext = Depends(require_app),
    svc: TableService = Depends(_svc),
):
    tables = await svc.list_tables(app)
    return success_response([TableRead.model_validate(t) for t in tables])


@router.post("", status_code=201)
async def create_table(
    body: TableCreate,
    app: AppContext = Depends(require_app),
    user: CurrentUser = Depends(require_company),
    svc: TableService = Depends(_svc),
):
    table = await svc.create_table(
        app,
        user.id,
        body.name,
        [f.model_dump() for f in body.fields],
        slug=body.slug,
    )
    return success_response(TableRead.model_validate(table))


@router.post("/{table_slug}/rows", status_code=201)
async def insert_row(
    table_slug: str,
    body: RowCreate,
    app: AppContext = Depends(require_app),
    svc: TableService = Depends(_svc),
):
    table = await svc.get_table(app, table_slug)
    row = await svc.insert_row(table, body.data)
    return success_response(RowRead.model_validate(row))


# ─── Views ──────────────────────────────────────────────

@router.get("/{table_slug}/views")
async def list_views(
    table_slug: str,
    app: AppContext = Depends(require_app),
    svc: TableService = Depends(_svc),
):
    table = await svc.get_table(app, table_slug)
    views = await svc.list_views(table)
    return success_response([ViewRead.model_validate(v) for v in views])


@router.post("/{table_slug}/views", status_code=201)
async def create_view(
    table_slug: str,
    body: ViewCreate,
    app: AppContext = Depends(require_app),
    svc: TableService = Depends(_svc),
):
    table = await svc.get_table(app, table_slug)
    view = await svc.create_view(
        table,
        body.name,
        filters=body.filters,
        sorts=[s.model_dump() for s in body.sorts],
    )
    return success_response(ViewRead.model_validate(view))


@router.post("/{table_slug}/views/{view_id}/query")
async def query_view(
    table_slug: str,
    view_id: uuid.UUID,
    body: ViewQuery,
    app: AppContext = Depends(require_app),
    svc: TableService = Depends(_svc),
):
    """Rows of a saved view.

    body.filters replaces the view's own filters for this call and
    body.additional narrows further. The company/table boundary always
    applies on top of both.
    """
    table = await svc.get_table(app, table_slug)
    view = await svc.get_view(table, view_id)
    rows, total = await svc.query_view(
        table,
        view,
        filters_override=body.filters,
        additional=body.additional,
        sorts=[s.model_dump() for s in body.sorts] if body.sorts is not None else None,
        limit=body.limit,
        offset=body.offset,
    )
    return paginated_response(
        [RowRead.model_validate(r) for r in rows],
        total,
        body.limit,
        body.offset,
    )
