"""Workspace and app service.

Learn: Every method takes the company id from the already-resolved
request context; nothing here decides which tenant a caller belongs to.
Slugs are allocated with insert_with_unique_slug, scoped by company, so two
requests creating "Sales" at once end up with "sales" and "sales-1".
"""

import uuid
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantry.audit.actions import (
    APP_CREATED,
    APP_DELETED,
    APP_UPDATED,
    WORKSPACE_CREATED,
    WORKSPACE_DELETED,
    WORKSPACE_UPDATED,
)
from tenantry.audit.store import AuditStore
from tenantry.db.models import App, DataRow, DataTable, DataTableView, Workspace
from tenantry.errors import NotFound
from tenantry.utils.slug import insert_with_unique_slug


class WorkspaceService:
    """Business logic for workspaces and apps within one company."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditStore(db)

    # ─── Workspaces ─────────────────────────────────────

    async def list_workspaces(self, company_id: uuid.UUID) -> list[Workspace]:
        result = await self.db.execute(
            select(Workspace)
            .where(Workspace.company_id == company_id)
            .order_by(Workspace.name)
        )
        return list(result.scalars().all())

    async def create_workspace(
        self,
        company_id: uuid.UUID,
        user_id: uuid.UUID,
        name: str,
        slug: Optional[str] = None,
        icon: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Workspace:
        workspace = await insert_with_unique_slug(
            self.db,
            Workspace,
            lambda s: Workspace(
                company_id=company_id,
                name=name,
                slug=s,
                icon=icon,
                description=description,
            ),
            name,
            Workspace.company_id,
            company_id,
            slug=slug,
        )
        await self.audit.append(
            WORKSPACE_CREATED, "workspace", workspace.id,
            company_id=company_id, user_id=user_id,
            data={"name": name, "slug": workspace.slug},
        )
        await self.db.commit()
        return workspace

    async def _load_workspace(self, workspace_id: uuid.UUID, company_id: uuid.UUID) -> Workspace:
        result = await self.db.execute(
            select(Workspace).where(
                Workspace.id == workspace_id,
                Workspace.company_id == company_id,
            )
        )
        workspace = result.scalars().first()
        if workspace is None:
            raise NotFound("Workspace not found")
        return workspace

    async def update_workspace(
        self,
        workspace_id: uuid.UUID,
        company_id: uuid.UUID,
        user_id: uuid.UUID,
        changes: dict,
    ) -> Workspace:
        workspace = await self._load_workspace(workspace_id, company_id)
        for key in ("name", "icon", "description"):
            if changes.get(key) is not None:
                setattr(workspace, key, changes[key])
        await self.audit.append(
            WORKSPACE_UPDATED, "workspace", workspace.id,
            company_id=company_id, user_id=user_id,
            data={k: v for k, v in changes.items() if v is not None},
        )
        await self.db.commit()
        return workspace

    async def delete_workspace(
        self,
        workspace_id: uuid.UUID,
        company_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        """Delete a workspace. Its apps survive, detached from it."""
        workspace = await self._load_workspace(workspace_id, company_id)
        await self.db.execute(
            update(App)
            .where(App.workspace_id == workspace.id, App.company_id == company_id)
            .values(workspace_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.db.delete(workspace)
        await self.audit.append(
            WORKSPACE_DELETED, "workspace", workspace_id,
            company_id=company_id, user_id=user_id,
            data={"slug": workspace.slug},
        )
        await self.db.commit()

    # ─── Apps ───────────────────────────────────────────

    async def list_apps(
        self,
        company_id: uuid.UUID,
        workspace_id: Optional[uuid.UUID] = None,
    ) -> list[App]:
        query = select(App).where(App.company_id == company_id).order_by(App.name)
        if workspace_id is not None:
            query = query.where(App.workspace_id == workspace_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_app(
        self,
        company_id: uuid.UUID,
        user_id: uuid.UUID,
        name: str,
        workspace_id: Optional[uuid.UUID] = None,
        slug: Optional[str] = None,
        icon: Optional[str] = None,
        description: Optional[str] = None,
    ) -> App:
        if workspace_id is not None:
            # Callers may pass a raw id from the body; keep it inside the tenant.
            await self._load_workspace(workspace_id, company_id)

        app = await insert_with_unique_slug(
            self.db,
            App,
            lambda s: App(
                company_id=company_id,
                workspace_id=workspace_id,
                name=name,
                slug=s,
                icon=icon,
                description=description,
            ),
            name,
            App.company_id,
            company_id,
            slug=slug,
        )
        await self.audit.append(
            APP_CREATED, "app", app.id,
            company_id=company_id, user_id=user_id,
            data={"name": name, "slug": app.slug},
        )
        await self.db.commit()
        return app

    async def _load_app(self, app_id: uuid.UUID, company_id: uuid.UUID) -> App:
        result = await self.db.execute(
            select(App).where(App.id == app_id, App.company_id == company_id)
        )
        app = result.scalars().first()
        if app is None:
            raise NotFound("App not found")
        return app

    async def update_app(
        self,
        app_id: uuid.UUID,
        company_id: uuid.UUID,
        user_id: uuid.UUID,
        changes: dict,
    ) -> App:
        app = await self._load_app(app_id, company_id)
        for key in ("name", "icon", "description"):
            if changes.get(key) is not None:
                setattr(app, key, changes[key])
        await self.audit.append(
            APP_UPDATED, "app", app.id,
            company_id=company_id, user_id=user_id,
            data={k: v for k, v in changes.items() if v is not None},
        )
        await self.db.commit()
        return app

    async def delete_app(
        self,
        app_id: uuid.UUID,
        company_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        """Delete an app with its tables, views and rows."""
        app = await self._load_app(app_id, company_id)
        table_ids = select(DataTable.id).where(DataTable.app_id == app.id)
        await self.db.execute(delete(DataRow).where(DataRow.table_id.in_(table_ids)))
        await self.db.execute(
            delete(DataTableView).where(DataTableView.table_id.in_(table_ids))
        )
        await self.db.execute(delete(DataTable).where(DataTable.app_id == app.id))
        await self.db.delete(app)
        await self.audit.append(
            APP_DELETED, "app", app_id,
            company_id=company_id, user_id=user_id,
            data={"slug": app.slug},
        )
        await self.db.commit()
