"""IdentityResolver tests — token → CurrentUser, company switching."""

import uuid

import pytest
from sqlalchemy import delete

from tenantry.auth.identity import IdentityResolver
from tenantry.config import settings
from tenantry.db.models import CompanyMember
from tenantry.errors import Forbidden

from conftest import seed_membership, seed_session, seed_user


@pytest.mark.asyncio
async def test_resolve_without_token(db):
    resolver = IdentityResolver(db)
    assert await resolver.resolve(None) is None
    assert await resolver.resolve("") is None
    assert await resolver.resolve("bogus") is None


@pytest.mark.asyncio
async def test_resolve_user_without_company(session_factory, db):
    user = await seed_user(session_factory, "alice@example.com")
    token = await seed_session(session_factory, user.id)

    current = await IdentityResolver(db).resolve(token)
    assert current.id == user.id
    assert current.email == "alice@example.com"
    assert current.company is None
    assert not current.has_role("owner")


@pytest.mark.asyncio
async def test_resolve_with_active_company(session_factory, db):
    user = await seed_user(session_factory, "bob@example.com")
    company = await seed_membership(session_factory, user.id, "Acme", role="admin")
    token = await seed_session(session_factory, user.id, company.id)

    current = await IdentityResolver(db).resolve(token)
    assert current.company.id == company.id
    assert current.company.role == "admin"
    assert current.has_role("owner", "admin")
    assert current.session.company_id == company.id


@pytest.mark.asyncio
async def test_revoked_membership_drops_company(session_factory, db):
    user = await seed_user(session_factory, "carol@example.com")
    company = await seed_membership(session_factory, user.id, "Acme")
    token = await seed_session(session_factory, user.id, company.id)

    async with session_factory() as other:
        await other.execute(
            delete(CompanyMember).where(CompanyMember.user_id == user.id)
        )
        await other.commit()

    current = await IdentityResolver(db).resolve(token)
    assert current is not None
    assert current.company is None


@pytest.mark.asyncio
async def test_current_user_is_frozen(session_factory, db):
    user = await seed_user(session_factory, "dave@example.com")
    token = await seed_session(session_factory, user.id)
    current = await IdentityResolver(db).resolve(token)
    with pytest.raises(Exception):
        current.email = "other@example.com"


@pytest.mark.asyncio
async def test_switch_company_requires_membership(session_factory, db):
    alice = await seed_user(session_factory, "erin@example.com")
    bob = await seed_user(session_factory, "frank@example.com")
    own = await seed_membership(session_factory, alice.id, "Own")
    foreign = await seed_membership(session_factory, bob.id, "Foreign")
    token = await seed_session(session_factory, alice.id, own.id)

    resolver = IdentityResolver(db)
    current = await resolver.resolve(token)
    with pytest.raises(Forbidden):
        await resolver.switch_company(current, foreign.id)
    await db.rollback()

    # Session still points at the original company.
    async with session_factory() as other:
        again = await IdentityResolver(other).resolve(token)
        assert again.company.id == own.id


@pytest.mark.asyncio
async def test_switch_company_updates_session(session_factory, db):
    user = await seed_user(session_factory, "gina@example.com")
    first = await seed_membership(session_factory, user.id, "First")
    second = await seed_membership(session_factory, user.id, "Second", role="member")
    token = await seed_session(session_factory, user.id, first.id)

    resolver = IdentityResolver(db)
    membership = await resolver.switch_company(await resolver.resolve(token), second.id)
    await db.commit()
    assert membership.id == second.id
    assert membership.role == "member"

    async with session_factory() as other:
        again = await IdentityResolver(other).resolve(token)
        assert again.company.id == second.id


@pytest.mark.asyncio
async def test_dev_identity_disabled_by_default(db):
    assert settings.insecure_dev_identity is False
    with pytest.raises(RuntimeError):
        await IdentityResolver(db).resolve_dev_identity()


@pytest.mark.asyncio
async def test_dev_identity_when_enabled(session_factory, db, monkeypatch):
    user = await seed_user(session_factory, settings.dev_identity_email)
    company = await seed_membership(session_factory, user.id, "Dev")
    monkeypatch.setattr(settings, "insecure_dev_identity", True)

    current = await IdentityResolver(db).resolve_dev_identity()
    assert current.id == user.id
    assert current.company.id == company.id
    assert current.session.id == uuid.UUID(int=0)
