"""CLI tests — click commands against a temporary SQLite database."""

import asyncio
import uuid
from datetime import timedelta

import pytest
from click.testing import CliRunner
from sqlalchemy import func, select

from tenantry.audit.store import AuditStore
from tenantry.cli.main import main
from tenantry.db.engine import build_engine, build_session_factory
from tenantry.db.models import MagicLink, Session, User
from tenantry.db.types import utcnow


@pytest.fixture()
def database_url(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"
    result = CliRunner().invoke(main, ["init-db", "--database-url", url])
    assert result.exit_code == 0, result.output
    assert "Database tables created" in result.output
    return url


def _in_db(url, work):
    async def _impl():
        engine = build_engine(url)
        try:
            async with build_session_factory(engine)() as db:
                out = await work(db)
                await db.commit()
                return out
        finally:
            await engine.dispose()

    return asyncio.run(_impl())


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "tenantry" in result.output


def test_issue_link(database_url):
    result = CliRunner().invoke(
        main, ["issue-link", "Alice@Example.com", "--database-url", database_url]
    )
    assert result.exit_code == 0, result.output
    assert "/auth/verify?token=" in result.output

    async def _links(db):
        return list((await db.execute(select(MagicLink))).scalars())

    links = _in_db(database_url, _links)
    assert len(links) == 1
    assert links[0].email == "alice@example.com"
    assert links[0].type == "login"
    assert links[0].token in result.output


def test_issue_link_rejects_unknown_type(database_url):
    result = CliRunner().invoke(
        main, ["issue-link", "a@example.com", "--type", "reset", "--database-url", database_url]
    )
    assert result.exit_code != 0


def test_purge_expired(database_url):
    async def _seed(db):
        user = User(email="bob@example.com")
        db.add(user)
        await db.flush()
        past = utcnow() - timedelta(days=1)
        future = utcnow() + timedelta(days=1)
        db.add_all([
            Session(user_id=user.id, token=uuid.uuid4().hex, expires_at=past),
            Session(user_id=user.id, token=uuid.uuid4().hex, expires_at=future),
            MagicLink(email=user.email, token=uuid.uuid4().hex, type="login", expires_at=past),
        ])

    _in_db(database_url, _seed)
    result = CliRunner().invoke(main, ["purge-expired", "--database-url", database_url])
    assert result.exit_code == 0, result.output
    assert "Removed 1 expired sessions and 1 expired magic links" in result.output

    async def _count(db):
        return await db.scalar(select(func.count()).select_from(Session))

    assert _in_db(database_url, _count) == 1


def test_audit(database_url):
    company_id = uuid.uuid4()

    async def _seed(db):
        await AuditStore(db).append("user.login", "user", uuid.uuid4(), company_id=company_id)

    _in_db(database_url, _seed)

    result = CliRunner().invoke(
        main, ["audit", "--company-id", str(company_id), "--database-url", database_url]
    )
    assert result.exit_code == 0, result.output
    assert "user.login" in result.output

    result = CliRunner().invoke(
        main, ["audit", "--action", "company.created", "--database-url", database_url]
    )
    assert "No audit entries found." in result.output


def test_audit_requires_a_filter(database_url):
    result = CliRunner().invoke(main, ["audit", "--database-url", database_url])
    assert result.exit_code != 0
