"""Data table API tests — tables, rows, views and tenant-bounded queries."""

import uuid

import pytest

from tenantry.db.models import DataRow

from conftest import bearer, signup_with_company

FIELDS = [
    {"name": "title", "type": "text"},
    {"name": "stage", "type": "select"},
    {"name": "amount", "type": "number"},
    {"name": "hot", "type": "boolean"},
]

DEALS = [
    {"title": "Acme renewal", "stage": "open", "amount": 12000, "hot": True},
    {"title": "Globex pilot", "stage": "open", "amount": 3000, "hot": False},
    {"title": "Initech upsell", "stage": "won", "amount": 8000, "hot": False},
    {"title": "Umbrella trial", "stage": "lost", "amount": 500, "hot": False},
]


async def _setup_deals(client, company="Acme"):
    token, _ = await signup_with_company(client, company)
    h = bearer(token)
    await client.post("/api/apps", json={"name": "CRM"}, headers=h)
    r = await client.post(
        "/api/apps/crm/tables", json={"name": "Deals", "fields": FIELDS}, headers=h
    )
    assert r.status_code == 201, r.text
    for deal in DEALS:
        r = await client.post("/api/apps/crm/tables/deals/rows", json={"data": deal}, headers=h)
        assert r.status_code == 201, r.text
    return h


async def _view(client, h, filters=None, sorts=None, name="View"):
    r = await client.post(
        "/api/apps/crm/tables/deals/views",
        json={"name": name, "filters": filters, "sorts": sorts or []},
        headers=h,
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]


async def _query(client, h, view_id, **body):
    return await client.post(
        f"/api/apps/crm/tables/deals/views/{view_id}/query", json=body, headers=h
    )


def _titles(r):
    return [row["data"]["title"] for row in r.json()["data"]]


OPEN = {"conditions": [{"column": "stage", "operator": "equals", "value": "open"}]}


# ═══════════════════════════════════════════════════════════
# Tables and rows
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_and_list_tables(client):
    h = await _setup_deals(client)
    r = await client.get("/api/apps/crm/tables", headers=h)
    tables = r.json()["data"]
    assert [t["slug"] for t in tables] == ["deals"]
    assert tables[0]["fields"] == FIELDS


@pytest.mark.asyncio
async def test_table_validation(client):
    token, _ = await signup_with_company(client)
    h = bearer(token)
    await client.post("/api/apps", json={"name": "CRM"}, headers=h)

    dup = await client.post(
        "/api/apps/crm/tables",
        json={"name": "T", "fields": [{"name": "a", "type": "text"}, {"name": "a", "type": "text"}]},
        headers=h,
    )
    assert dup.status_code == 422
    bad_type = await client.post(
        "/api/apps/crm/tables",
        json={"name": "T", "fields": [{"name": "a", "type": "blob"}]},
        headers=h,
    )
    assert bad_type.status_code == 422


@pytest.mark.asyncio
async def test_row_validation(client):
    h = await _setup_deals(client)
    unknown = await client.post(
        "/api/apps/crm/tables/deals/rows", json={"data": {"nope": 1}}, headers=h
    )
    assert unknown.status_code == 422
    wrong_type = await client.post(
        "/api/apps/crm/tables/deals/rows", json={"data": {"amount": "lots"}}, headers=h
    )
    assert wrong_type.status_code == 422


@pytest.mark.asyncio
async def test_unknown_table_is_404(client):
    h = await _setup_deals(client)
    r = await client.post("/api/apps/crm/tables/missing/rows", json={"data": {}}, headers=h)
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Views
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_view_filters_and_sorts(client):
    h = await _setup_deals(client)
    view = await _view(client, h, OPEN, [{"column": "title", "direction": "desc"}])
    r = await _query(client, h, view["id"])
    assert r.status_code == 200
    assert _titles(r) == ["Globex pilot", "Acme renewal"]
    assert r.json()["meta"]["pagination"] == {
        "total": 2, "limit": 50, "offset": 0, "has_more": False,
    }


@pytest.mark.asyncio
async def test_list_views(client):
    h = await _setup_deals(client)
    await _view(client, h, OPEN, name="Open")
    r = await client.get("/api/apps/crm/tables/deals/views", headers=h)
    assert [v["name"] for v in r.json()["data"]] == ["Open"]


@pytest.mark.asyncio
async def test_view_with_unknown_column_rejected(client):
    h = await _setup_deals(client)
    r = await client.post(
        "/api/apps/crm/tables/deals/views",
        json={"name": "Bad", "filters": {"conditions": [
            {"column": "owner", "operator": "equals", "value": "x"},
        ]}},
        headers=h,
    )
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_additional_filters_only_narrow(client):
    h = await _setup_deals(client)
    view = await _view(client, h, OPEN)

    narrowed = await _query(client, h, view["id"], additional={
        "conditions": [{"column": "amount", "operator": "gte", "value": 5000}],
    })
    assert _titles(narrowed) == ["Acme renewal"]

    # An OR in the client filter can't pull in rows outside the view.
    widened = await _query(client, h, view["id"], additional={
        "operator": "OR",
        "conditions": [
            {"column": "stage", "operator": "equals", "value": "won"},
            {"column": "stage", "operator": "equals", "value": "lost"},
        ],
    })
    assert _titles(widened) == []


@pytest.mark.asyncio
async def test_override_replaces_view_filters(client):
    h = await _setup_deals(client)
    view = await _view(client, h, OPEN, [{"column": "title"}])
    r = await _query(client, h, view["id"], filters={
        "conditions": [{"column": "stage", "operator": "in", "value": ["won", "lost"]}],
    })
    assert _titles(r) == ["Initech upsell", "Umbrella trial"]


@pytest.mark.asyncio
async def test_operators(client):
    h = await _setup_deals(client)
    view = await _view(client, h, None, [{"column": "title"}])

    async def titles(*conditions, operator="AND"):
        r = await _query(client, h, view["id"], additional={
            "operator": operator, "conditions": list(conditions),
        })
        assert r.status_code == 200, r.text
        return _titles(r)

    assert await titles({"column": "title", "operator": "contains", "value": "pilot"}) == ["Globex pilot"]
    assert await titles({"column": "title", "operator": "starts_with", "value": "um"}) == ["Umbrella trial"]
    assert await titles({"column": "title", "operator": "ends_with", "value": "upsell"}) == ["Initech upsell"]
    assert await titles({"column": "amount", "operator": "between", "value": [1000, 9000]}) == [
        "Globex pilot", "Initech upsell",
    ]
    assert await titles({"column": "hot", "operator": "equals", "value": True}) == ["Acme renewal"]
    assert await titles({"column": "stage", "operator": "not_in", "value": ["open"]}) == [
        "Initech upsell", "Umbrella trial",
    ]

    # LIKE wildcards in a value are literal text.
    assert await titles({"column": "title", "operator": "contains", "value": "%"}) == []
    assert await titles({"column": "title", "operator": "starts_with", "value": "_lobex"}) == []
    assert await titles({"column": "title", "operator": "ends_with", "value": "p_lot"}) == []
    assert await titles({"column": "title", "operator": "not_contains", "value": "%"}) == [
        "Acme renewal", "Globex pilot", "Initech upsell", "Umbrella trial",
    ]


@pytest.mark.asyncio
async def test_pagination(client):
    h = await _setup_deals(client)
    view = await _view(client, h, None, [{"column": "title"}])
    r = await _query(client, h, view["id"], limit=2, offset=1)
    assert _titles(r) == ["Globex pilot", "Initech upsell"]
    assert r.json()["meta"]["pagination"]["total"] == 4
    assert r.json()["meta"]["pagination"]["has_more"] is True


@pytest.mark.asyncio
async def test_unknown_view_is_404(client):
    h = await _setup_deals(client)
    r = await _query(client, h, str(uuid.uuid4()))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_boundary_excludes_other_tables_and_tenants(client, session_factory):
    h = await _setup_deals(client, "Alpha")
    other = await _setup_deals(client, "Beta")
    view = await _view(client, h, None)

    # A row that claims to belong to the table but sits in another tenant.
    tables = (await client.get("/api/apps/crm/tables", headers=h)).json()["data"]
    async with session_factory() as db:
        db.add(DataRow(
            company_id=uuid.uuid4(),
            table_id=uuid.UUID(tables[0]["id"]),
            data={"title": "Intruder", "stage": "open", "amount": 1, "hot": False},
        ))
        await db.commit()

    r = await _query(client, h, view["id"])
    assert r.json()["meta"]["pagination"]["total"] == 4
    assert "Intruder" not in _titles(r)

    # The other tenant can't reach this view through its own app either.
    r = await _query(client, other, view["id"])
    assert r.status_code == 404

    # Client filters naming system columns can't escape the boundary.
    r = await _query(client, h, view["id"], additional={
        "operator": "OR",
        "conditions": [{"column": "$company_id", "operator": "equals", "value": str(uuid.uuid4())}],
    })
    assert r.json()["meta"]["pagination"]["total"] == 0
