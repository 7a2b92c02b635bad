"""Auth API tests — registration, password login, magic links, sessions.

Learn: Tests cover:
1. Registration (signs in) + duplicate prevention
2. Password login, with and without a remembered company
3. Magic-link send/verify, replay, unknown users and verify_email links
4. /me, profile, password change, logout and logout-all
"""

import pytest
from sqlalchemy import select

from tenantry.audit.actions import MAGIC_LINK_REPLAYED
from tenantry.audit.store import AuditStore
from tenantry.config import settings
from tenantry.db.models import User

from conftest import bearer, seed_membership, seed_user, signup, signup_with_company, unique_email


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_signs_in(client):
    email = unique_email("reg")
    r = await client.post(
        "/api/auth/register",
        json={"email": email, "password": "secure_password_123", "name": "Reg User"},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["data"]["user"]["email"] == email
    assert body["data"]["user"]["name"] == "Reg User"
    assert len(body["data"]["session"]["token"]) == 64

    cookie = r.headers["set-cookie"]
    assert f"{settings.session_cookie_name}=" in cookie
    assert "HttpOnly" in cookie
    assert "samesite=lax" in cookie.lower()


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    email = unique_email("dup")
    body = {"email": email, "password": "password_123"}
    assert (await client.post("/api/auth/register", json=body)).status_code == 201
    r = await client.post("/api/auth/register", json={**body, "email": email.upper()})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "CONFLICT"


@pytest.mark.asyncio
async def test_register_validation(client):
    r = await client.post(
        "/api/auth/register", json={"email": unique_email(), "password": "abc"}
    )
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    r = await client.post(
        "/api/auth/register", json={"email": "not-an-email", "password": "long-enough-1"}
    )
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Password login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success_and_failure(client):
    email = unique_email("login")
    await signup(client, email=email, password="correct-horse")

    r = await client.post("/api/auth/login", json={"email": email, "password": "correct-horse"})
    assert r.status_code == 200
    token = r.json()["data"]["session"]["token"]
    client.cookies.clear()

    me = await client.get("/api/auth/me", headers=bearer(token))
    assert me.status_code == 200
    assert me.json()["data"]["email"] == email

    bad = await client.post("/api/auth/login", json={"email": email, "password": "wrong"})
    assert bad.status_code == 401
    nobody = await client.post(
        "/api/auth/login", json={"email": unique_email(), "password": "whatever"}
    )
    assert nobody.status_code == 401


@pytest.mark.asyncio
async def test_login_restores_remembered_company(client, session_factory):
    user = await seed_user(session_factory, "remember@example.com", password="password-123")
    company = await seed_membership(session_factory, user.id, "Remembered")

    r = await client.post(
        "/api/auth/login",
        json={"email": "remember@example.com", "password": "password-123"},
        headers={"Cookie": f"{settings.company_cookie_name}={company.id}"},
    )
    assert r.status_code == 200
    token = r.json()["data"]["session"]["token"]
    client.cookies.clear()

    me = (await client.get("/api/auth/me", headers=bearer(token))).json()["data"]
    assert me["company"]["id"] == str(company.id)
    assert me["company"]["role"] == "owner"


@pytest.mark.asyncio
async def test_login_ignores_company_cookie_without_membership(client, session_factory):
    user = await seed_user(session_factory, "stranger@example.com", password="password-123")
    owner = await seed_user(session_factory, "owner@example.com")
    foreign = await seed_membership(session_factory, owner.id, "Foreign")

    r = await client.post(
        "/api/auth/login",
        json={"email": "stranger@example.com", "password": "password-123"},
        headers={"Cookie": f"{settings.company_cookie_name}={foreign.id}"},
    )
    token = r.json()["data"]["session"]["token"]
    client.cookies.clear()

    me = (await client.get("/api/auth/me", headers=bearer(token))).json()["data"]
    assert me["company"] is None


# ═══════════════════════════════════════════════════════════
# Magic links
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_magic_link_login_flow(client, mailbox, session_factory):
    await seed_user(session_factory, "magic@example.com")

    r = await client.post("/api/auth/magic-link/send", json={"email": "magic@example.com"})
    assert r.status_code == 200
    assert mailbox.sent[-1].to == "magic@example.com"
    token = mailbox.last_token()

    r = await client.post("/api/auth/magic-link/verify", json={"token": token})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["user"]["email"] == "magic@example.com"
    assert data["user"]["email_verified_at"] is not None
    assert data["session"]["token"]

    replay = await client.post("/api/auth/magic-link/verify", json={"token": token})
    assert replay.status_code == 409
    assert replay.json()["error"]["code"] == "ALREADY_USED"


@pytest.mark.asyncio
async def test_magic_link_send_does_not_reveal_accounts(client, mailbox):
    r = await client.post("/api/auth/magic-link/send", json={"email": unique_email("ghost")})
    assert r.status_code == 200
    assert len(mailbox.sent) == 1


@pytest.mark.asyncio
async def test_magic_link_login_for_unknown_user_is_404(client, mailbox):
    await client.post("/api/auth/magic-link/send", json={"email": unique_email("ghost")})
    r = await client.post("/api/auth/magic-link/verify", json={"token": mailbox.last_token()})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_magic_link_invalid_token(client):
    r = await client.post("/api/auth/magic-link/verify", json={"token": "deadbeef"})
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_magic_link_replay_is_audited(client, mailbox, session_factory):
    await seed_user(session_factory, "again@example.com")
    await client.post("/api/auth/magic-link/send", json={"email": "again@example.com"})
    token = mailbox.last_token()
    await client.post("/api/auth/magic-link/verify", json={"token": token})
    client.cookies.clear()

    replay = await client.post("/api/auth/magic-link/verify", json={"token": token})
    assert replay.status_code == 409
    async with session_factory() as db:
        assert len(await AuditStore(db).list_by_action(MAGIC_LINK_REPLAYED)) == 1


@pytest.mark.asyncio
async def test_anonymous_send_cannot_create_account(client, mailbox, session_factory):
    email = unique_email("stranger")
    r = await client.post("/api/auth/magic-link/send", json={"email": email, "type": "invite"})
    assert r.status_code == 200
    token = mailbox.last_token()

    # The public send issued a login link, whatever type was asked for.
    as_invite = await client.post(
        "/api/auth/magic-link/verify", json={"token": token, "type": "invite"}
    )
    assert as_invite.status_code == 404
    as_login = await client.post("/api/auth/magic-link/verify", json={"token": token})
    assert as_login.status_code == 404

    async with session_factory() as db:
        found = await db.execute(select(User).where(User.email == email))
        assert found.scalars().first() is None


@pytest.mark.asyncio
async def test_verify_email_send_requires_auth(client):
    r = await client.post("/api/auth/verify-email/send")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_verify_email_link(client, mailbox):
    email = unique_email("verify")
    token = await signup(client, email=email)
    me = (await client.get("/api/auth/me", headers=bearer(token))).json()["data"]
    assert me["email_verified_at"] is None

    r = await client.post("/api/auth/verify-email/send", headers=bearer(token))
    assert r.status_code == 200
    assert mailbox.sent[-1].to == email
    link = mailbox.last_token()

    # Only redeemable as the type it was issued for.
    wrong = await client.post("/api/auth/magic-link/verify", json={"token": link})
    assert wrong.status_code == 404

    r = await client.post(
        "/api/auth/magic-link/verify", json={"token": link, "type": "verify_email"}
    )
    assert r.status_code == 200
    assert r.json()["data"]["session"] is None
    assert r.json()["meta"]["message"] == "Email verified"

    me = (await client.get("/api/auth/me", headers=bearer(token))).json()["data"]
    assert me["email_verified_at"] is not None


# ═══════════════════════════════════════════════════════════
# Profile / sessions
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_includes_active_company(client):
    token, company = await signup_with_company(client, "Acme")
    me = (await client.get("/api/auth/me", headers=bearer(token))).json()["data"]
    assert me["company"] == {
        "id": company["id"],
        "name": "Acme",
        "slug": company["slug"],
        "role": "owner",
    }


@pytest.mark.asyncio
async def test_update_profile(client):
    token = await signup(client)
    r = await client.put(
        "/api/auth/profile", json={"name": "New Name", "avatar": "https://x/a.png"},
        headers=bearer(token),
    )
    assert r.status_code == 200
    assert r.json()["data"]["name"] == "New Name"
    me = (await client.get("/api/auth/me", headers=bearer(token))).json()["data"]
    assert me["avatar"] == "https://x/a.png"


@pytest.mark.asyncio
async def test_change_password(client):
    email = unique_email("pw")
    token = await signup(client, email=email, password="old-password")

    bad = await client.put(
        "/api/auth/password",
        json={"current_password": "wrong", "new_password": "new-password"},
        headers=bearer(token),
    )
    assert bad.status_code == 422

    ok = await client.put(
        "/api/auth/password",
        json={"current_password": "old-password", "new_password": "new-password"},
        headers=bearer(token),
    )
    assert ok.status_code == 200
    r = await client.post("/api/auth/login", json={"email": email, "password": "new-password"})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_logout_invalidates_session(client):
    token = await signup(client)
    r = await client.post("/api/auth/logout", headers=bearer(token))
    assert r.status_code == 200
    assert (await client.get("/api/auth/me", headers=bearer(token))).status_code == 401


@pytest.mark.asyncio
async def test_logout_without_session_is_ok(client):
    r = await client.post("/api/auth/logout")
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_logout_all(client):
    email = unique_email("all")
    first = await signup(client, email=email)
    r = await client.post("/api/auth/login", json={"email": email, "password": "password-123"})
    second = r.json()["data"]["session"]["token"]
    client.cookies.clear()

    r = await client.post("/api/auth/logout-all", headers=bearer(first))
    assert r.status_code == 200
    assert r.json()["data"] == {"sessions": 2}
    assert (await client.get("/api/auth/me", headers=bearer(second))).status_code == 401
