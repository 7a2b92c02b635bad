"""Data table service — tables, rows, saved views and view queries.

Learn: A view query is where the filter algebra earns its keep. The
effective filter is always

    merge(tenant_boundary, merge(view filters or override, client filters))

so the boundary (company + table) is the outermost AND and no client input
can widen the rows it selects. Anything a client sends only ever lands in
the right-hand side of a merge.
"""

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.audit.actions import TABLE_CREATED
from tenantry.audit.store import AuditStore
from tenantry.db.models import DataRow, DataTable, DataTableView
from tenantry.errors import NotFound, ValidationError
from tenantry.pipeline.context import AppContext
from tenantry.query.compiler import compile_filter, compile_sorts
from tenantry.query.filters import FilterGroup, merge_filters, parse_filter, tenant_boundary
from tenantry.utils.slug import insert_with_unique_slug

logger = structlog.get_logger()

FIELD_TYPES = ("text", "number", "boolean", "date", "email", "url", "select")


def _check_value(field: dict, value: Any) -> None:
    if value is None:
        return
    kind = field["type"]
    if kind == "number":
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif kind == "boolean":
        ok = isinstance(value, bool)
    else:
        ok = isinstance(value, str)
    if not ok:
        raise ValidationError(
            f"Invalid value for field '{field['name']}'",
            {"field": field["name"], "type": kind},
        )


class TableService:
    """Business logic for the data tables of one app."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditStore(db)

    # ─── Tables ─────────────────────────────────────────

    async def list_tables(self, app: AppContext) -> list[DataTable]:
        result = await self.db.execute(
            select(DataTable)
            .where(DataTable.app_id == app.id, DataTable.company_id == app.company_id)
            .order_by(DataTable.name)
        )
        return list(result.scalars().all())

    async def create_table(
        self,
        app: AppContext,
        user_id: uuid.UUID,
        name: str,
        fields: list[dict],
        slug: Optional[str] = None,
    ) -> DataTable:
        names = [f["name"] for f in fields]
        if len(set(names)) != len(names):
            raise ValidationError("Field names must be unique")
        for f in fields:
            if f["type"] not in FIELD_TYPES:
                raise ValidationError(f"Unknown field type: {f['type']}")

        table = await insert_with_unique_slug(
            self.db,
            DataTable,
            lambda s: DataTable(
                company_id=app.company_id,
                app_id=app.id,
                name=name,
                slug=s,
                fields=fields,
            ),
            name,
            DataTable.app_id,
            app.id,
            slug=slug,
        )
        await self.audit.append(
            TABLE_CREATED, "table", table.id,
            company_id=app.company_id, user_id=user_id,
            data={"name": name, "slug": table.slug, "app_id": str(app.id)},
        )
        await self.db.commit()
        return table

    async def get_table(self, app: AppContext, slug: str) -> DataTable:
        result = await self.db.execute(
            select(DataTable).where(
                DataTable.app_id == app.id,
                DataTable.company_id == app.company_id,
                DataTable.slug == slug,
            )
        )
        table = result.scalars().first()
        if table is None:
            raise NotFound(f"Table '{slug}' not found")
        return table

    # ─── Rows ───────────────────────────────────────────

    async def insert_row(self, table: DataTable, data: dict) -> DataRow:
        fields = {f["name"]: f for f in table.fields}
        unknown = sorted(set(data) - set(fields))
        if unknown:
            raise ValidationError("Unknown fields", {"fields": unknown})
        for key, value in data.items():
            _check_value(fields[key], value)

        row = DataRow(company_id=table.company_id, table_id=table.id, data=data)
        self.db.add(row)
        await self.db.commit()
        return row

    # ─── Views ──────────────────────────────────────────

    async def list_views(self, table: DataTable) -> list[DataTableView]:
        result = await self.db.execute(
            select(DataTableView)
            .where(
                DataTableView.table_id == table.id,
                DataTableView.company_id == table.company_id,
            )
            .order_by(DataTableView.created_at)
        )
        return list(result.scalars().all())

    async def create_view(
        self,
        table: DataTable,
        name: str,
        filters: Optional[FilterGroup] = None,
        sorts: Optional[list[dict]] = None,
    ) -> DataTableView:
        field_names = {f["name"] for f in table.fields}
        # Compile once so a broken view is rejected at save time.
        compile_filter(filters, field_names)
        compile_sorts(sorts or [], field_names)

        view = DataTableView(
            company_id=table.company_id,
            table_id=table.id,
            name=name,
            filters=filters.model_dump(mode="json") if filters else None,
            sorts=sorts or [],
        )
        self.db.add(view)
        await self.db.commit()
        return view

    async def get_view(self, table: DataTable, view_id: uuid.UUID) -> DataTableView:
        result = await self.db.execute(
            select(DataTableView).where(
                DataTableView.id == view_id,
                DataTableView.table_id == table.id,
                DataTableView.company_id == table.company_id,
            )
        )
        view = result.scalars().first()
        if view is None:
            raise NotFound("View not found")
        return view

    async def query_view(
        self,
        table: DataTable,
        view: DataTableView,
        filters_override: Optional[FilterGroup] = None,
        additional: Optional[FilterGroup] = None,
        sorts: Optional[list[dict]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DataRow], int]:
        """Rows of a view, narrowed by client filters. Returns (rows, total).

        filters_override replaces the view's saved filters; additional is
        ANDed on top. Neither can escape the tenant boundary.
        """
        view_filters = (
            filters_override if filters_override is not None else parse_filter(view.filters)
        )
        effective = merge_filters(
            tenant_boundary(table.company_id, table.id),
            merge_filters(view_filters, additional),
        )
        field_names = {f["name"] for f in table.fields}
        clause = compile_filter(effective, field_names)
        order_by = compile_sorts(sorts if sorts is not None else view.sorts, field_names)

        total = await self.db.scalar(
            select(func.count()).select_from(DataRow).where(clause)
        )
        result = await self.db.execute(
            select(DataRow)
            .where(clause)
            .order_by(*order_by, DataRow.created_at, DataRow.id)
            .limit(limit)
            .offset(offset)
        )
        rows = list(result.scalars().all())
        logger.debug(
            "table.view_queried",
            table_id=str(table.id),
            view_id=str(view.id),
            total=total,
        )
        return rows, total or 0
