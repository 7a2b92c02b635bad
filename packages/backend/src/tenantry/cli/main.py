"""Tenantry CLI — database setup and housekeeping.

Usage:
    tenantry init-db                          # Create all tables
    tenantry purge-expired                    # Delete expired sessions + magic links
    tenantry issue-link alice@example.com     # Print a login link (local dev)
    tenantry audit --action user.login        # Recent audit entries

Every command accepts --database-url (default: TENANTRY_DATABASE_URL).
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import uuid
from typing import Optional

import click

from tenantry import __version__
from tenantry.audit.store import AuditStore
from tenantry.auth.magic_links import MAGIC_LINK_TYPES, MagicLinkManager
from tenantry.auth.sessions import SessionManager
from tenantry.config import settings
from tenantry.db.engine import build_engine, build_session_factory
from tenantry.db.models import Base

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when a loop is already running (e.g. CliRunner
    inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


async def _with_session(database_url: str, work):
    engine = build_engine(database_url)
    try:
        async with build_session_factory(engine)() as db:
            return await work(db)
    finally:
        await engine.dispose()


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table. columns: (header, dict_key, width)."""
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        line = "  ".join(str(row.get(k) or "-")[:w].ljust(w) for _, k, w in columns)
        click.echo(line)


database_option = click.option(
    "--database-url",
    default=lambda: settings.database_url,
    show_default="TENANTRY_DATABASE_URL",
    help="SQLAlchemy async database URL",
)

# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="tenantry")
def main():
    """Tenantry — multi-tenant identity and data access service."""


@main.command("init-db")
@database_option
def init_db(database_url: str):
    """Create all tables (no migrations; for development and tests)."""

    async def _impl():
        engine = build_engine(database_url)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        finally:
            await engine.dispose()

    _run(_impl())
    click.secho("Database tables created", fg="green")


@main.command("purge-expired")
@database_option
def purge_expired(database_url: str):
    """Delete expired sessions and magic links."""

    async def _work(db):
        sessions = await SessionManager(db).delete_expired_sessions()
        links = await MagicLinkManager(db).delete_expired_magic_links()
        await db.commit()
        return sessions, links

    sessions, links = _run(_with_session(database_url, _work))
    click.echo(f"Removed {sessions} expired sessions and {links} expired magic links")


@main.command("issue-link")
@click.argument("email")
@click.option(
    "--type", "link_type",
    type=click.Choice(MAGIC_LINK_TYPES),
    default="login",
    show_default=True,
)
@database_option
def issue_link(email: str, link_type: str, database_url: str):
    """Issue a magic link for EMAIL and print its URL instead of mailing it."""

    async def _work(db):
        link = await MagicLinkManager(db).create_magic_link(email, link_type)
        await db.commit()
        return link

    link = _run(_with_session(database_url, _work))
    click.echo(f"{settings.app_url}/auth/verify?token={link.token}")
    click.secho(f"Expires at {link.expires_at.isoformat()}", fg="yellow", err=True)


@main.command()
@click.option("--company-id", "-c", help="Company UUID")
@click.option("--action", "-a", help="Only this action (e.g. user.login)")
@click.option("--limit", "-l", default=50, help="Max results")
@database_option
def audit(company_id: Optional[str], action: Optional[str], limit: int, database_url: str):
    """Show recent audit log entries."""
    if not company_id and not action:
        raise click.UsageError("Pass --company-id and/or --action")

    async def _work(db):
        store = AuditStore(db)
        if company_id:
            return await store.list_for_company(
                uuid.UUID(company_id), [action] if action else None, limit
            )
        return await store.list_by_action(action, limit)

    entries = _run(_with_session(database_url, _work))
    if not entries:
        click.echo("No audit entries found.")
        return
    _print_table(
        [
            {
                "at": e.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                "action": e.action,
                "entity": f"{e.entity_type}:{e.entity_id or ''}",
                "user": str(e.user_id) if e.user_id else None,
            }
            for e in entries
        ],
        [("At", "at", 19), ("Action", "action", 22), ("Entity", "entity", 46), ("User", "user", 36)],
    )


if __name__ == "__main__":
    main()
