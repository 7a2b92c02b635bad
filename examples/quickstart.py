#!/usr/bin/env python3
"""
Tenantry Quickstart — one tenant, end to end.

Registers a user → creates a company → workspace → app → table → rows →
saved view, then queries the view with an extra client-side filter.
Run with: python examples/quickstart.py

Requires: pip install httpx
Backend must be running: http://localhost:8000
"""

import sys
import uuid

import httpx

BASE = "http://localhost:8000/api"


def main():
    run_id = uuid.uuid4().hex[:6]
    # The session cookie set by /auth/register is kept on the client.
    client = httpx.Client(base_url=BASE, timeout=10)

    # ── Health check ──────────────────────────────────────────────
    print("Checking backend health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Backend not reachable at {BASE}")
        print("Start it with:  uvicorn tenantry.main:app --reload --port 8000")
        sys.exit(1)
    health = resp.json()
    print(f"  Database: {health['database']}")
    print(f"  Redis:    {health['redis']}")

    # ── Register (signs in) ───────────────────────────────────────
    print("\n1. Registering user...")
    resp = client.post("/auth/register", json={
        "email": f"demo-{run_id}@example.com",
        "password": "demo-password-123",
        "name": "Demo User",
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    print(f"   User: {resp.json()['data']['user']['email']}")

    # ── Company (caller becomes owner and switches to it) ─────────
    print("\n2. Creating company...")
    resp = client.post("/companies", json={"name": f"Demo Corp {run_id}"})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    company = resp.json()["data"]
    print(f"   Company: {company['name']} ({company['slug']}, {company['role']})")

    # ── Workspace + app ───────────────────────────────────────────
    print("\n3. Creating workspace and app...")
    resp = client.post("/workspaces", json={"name": "Sales"})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    workspace = resp.json()["data"]
    resp = client.post(f"/workspaces/{workspace['slug']}/apps", json={"name": "CRM"})
    assert resp.status_code == 201, f"Failed: {resp.text}"
    app = resp.json()["data"]
    print(f"   Workspace: {workspace['slug']}  App: {app['slug']}")

    # ── Table + rows ──────────────────────────────────────────────
    print("\n4. Creating table and rows...")
    resp = client.post(f"/apps/{app['slug']}/tables", json={
        "name": "Deals",
        "fields": [
            {"name": "title", "type": "text"},
            {"name": "stage", "type": "select"},
            {"name": "amount", "type": "number"},
        ],
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    table = resp.json()["data"]
    for title, stage, amount in [
        ("Acme renewal", "open", 12000),
        ("Globex pilot", "open", 3000),
        ("Initech upsell", "won", 8000),
    ]:
        resp = client.post(f"/apps/{app['slug']}/tables/{table['slug']}/rows", json={
            "data": {"title": title, "stage": stage, "amount": amount},
        })
        assert resp.status_code == 201, f"Failed: {resp.text}"
    print(f"   Table: {table['slug']} (3 rows)")

    # ── Saved view + narrowed query ───────────────────────────────
    print("\n5. Creating 'Open deals' view...")
    resp = client.post(f"/apps/{app['slug']}/tables/{table['slug']}/views", json={
        "name": "Open deals",
        "filters": {"conditions": [{"column": "stage", "operator": "equals", "value": "open"}]},
        "sorts": [{"column": "title"}],
    })
    assert resp.status_code == 201, f"Failed: {resp.text}"
    view = resp.json()["data"]

    resp = client.post(
        f"/apps/{app['slug']}/tables/{table['slug']}/views/{view['id']}/query",
        json={"additional": {"conditions": [{"column": "amount", "operator": "gte", "value": 5000}]}},
    )
    assert resp.status_code == 200, f"Failed: {resp.text}"
    body = resp.json()
    print(f"   Open deals >= 5000: {body['meta']['pagination']['total']}")
    for row in body["data"]:
        print(f"     - {row['data']['title']} ({row['data']['amount']})")

    print("\nDone.")


if __name__ == "__main__":
    main()
