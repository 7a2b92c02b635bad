"""Test fixtures — a fresh SQLite database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI without a server:

1. Each test gets its own SQLite file (aiosqlite driver) with all tables
   created from the ORM metadata.
2. The app's session factory is swapped on app.state, so the context
   pipeline middleware and the route handlers both use the test database.
3. SQLite engines open transactions with BEGIN IMMEDIATE. A session that
   is holding a transaction blocks writers, so tests use short-lived
   sessions (``async with session_factory() as db``) and commit before
   making HTTP requests.

Rate limiting is skipped (Redis is never initialized) and email goes to a
RecordingTransport instead of the console.
"""

import uuid

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tenantry.auth.password import hash_password
from tenantry.auth.sessions import SessionManager
from tenantry.db.engine import build_engine, build_session_factory
from tenantry.db.models import Base, Company, CompanyMember, User
from tenantry.main import app
from tenantry.services.email_service import get_transport


class RecordingTransport:
    """Email transport that keeps messages in memory."""

    def __init__(self):
        self.sent = []

    async def send(self, message) -> None:
        self.sent.append(message)

    def last_token(self) -> str:
        text = self.sent[-1].text
        return text.split("token=")[1].split()[0]

    def last_invite_code(self) -> str:
        text = self.sent[-1].text
        return text.split("code=")[1].split()[0]


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture()
async def db(session_factory):
    """One session for service-level tests that make no HTTP calls."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def mailbox():
    return RecordingTransport()


@pytest_asyncio.fixture()
async def client(session_factory, mailbox):
    """HTTP client against the real middleware stack and test database."""
    previous = app.state.session_factory
    app.state.session_factory = session_factory
    app.dependency_overrides[get_transport] = lambda: mailbox

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.session_factory = previous


# ─── Helpers ────────────────────────────────────────────


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


async def signup(client, email: str | None = None, password: str = "password-123", name: str = "Test User") -> str:
    """Register through the API and return the session token.

    The cookie jar is cleared so each caller authenticates explicitly
    with its own bearer token.
    """
    r = await client.post(
        "/api/auth/register",
        json={"email": email or unique_email(), "password": password, "name": name},
    )
    assert r.status_code == 201, r.text
    client.cookies.clear()
    return r.json()["data"]["session"]["token"]


async def signup_with_company(client, company: str = "Acme") -> tuple[str, dict]:
    """Register a user and create a company they own (session switched to it)."""
    token = await signup(client)
    r = await client.post("/api/companies", json={"name": company}, headers=bearer(token))
    assert r.status_code == 201, r.text
    client.cookies.clear()
    return token, r.json()["data"]


async def seed_user(session_factory, email: str, password: str | None = None) -> User:
    async with session_factory() as db:
        user = User(
            email=email,
            name=email.split("@")[0],
            password_hash=hash_password(password, rounds=4) if password else None,
        )
        db.add(user)
        await db.commit()
        return user


async def seed_membership(session_factory, user_id, name: str, role: str = "owner") -> Company:
    async with session_factory() as db:
        company = Company(name=name, slug=f"{name.lower()}-{uuid.uuid4().hex[:6]}")
        db.add(company)
        await db.flush()
        db.add(CompanyMember(company_id=company.id, user_id=user_id, role=role))
        await db.commit()
        return company


async def seed_session(session_factory, user_id, company_id=None) -> str:
    async with session_factory() as db:
        session = await SessionManager(db).create_session(user_id, company_id)
        await db.commit()
        return session.token
