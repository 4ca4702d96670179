"""
Cron endpoint tests.

Verifies that:
- The endpoint accepts Vercel Cron or the bearer secret, nothing else
- Supplier orders stuck in pending get their email job queued again
- Old drafts without items are deleted; drafts with items are kept
"""

import pytest

from conftest import ago

URL = "/api/cron/process-jobs"


@pytest.mark.asyncio
async def test_cron_requires_authorization(client):
    resp = await client.get(URL)
    assert resp.status_code == 401

    resp = await client.get(URL, headers={"Authorization": "Bearer wrong"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_cron_accepts_vercel_header(client):
    resp = await client.get(URL, headers={"x-vercel-cron-id": "job-1"})
    assert resp.status_code == 200
    assert resp.json()["success"] is True


@pytest.mark.asyncio
async def test_cron_requeues_stale_pending_orders(client, fake, tasks, acme):
    order = fake.add_order(acme.org, acme.member, "sent")
    stale = fake.insert_row(
        "supplier_orders",
        {"order_id": order["id"], "supplier_id": acme.produce["id"], "status": "pending", "created_at": ago(minutes=5)},
    )
    fake.insert_row(
        "supplier_orders",
        {"order_id": order["id"], "supplier_id": acme.dairy["id"], "status": "pending"},
    )
    fake.insert_row(
        "supplier_orders",
        {"order_id": order["id"], "supplier_id": acme.dairy["id"], "status": "sent", "created_at": ago(minutes=5)},
    )

    resp = await client.get(URL, headers={"Authorization": "Bearer cron-secret"})
    assert resp.status_code == 200
    assert resp.json()["requeued_supplier_orders"] == 1
    assert tasks.supplier_order.calls == [((stale["id"],), {})]


@pytest.mark.asyncio
async def test_cron_deletes_old_empty_drafts(client, fake, acme):
    empty = fake.add_order(acme.org, acme.member, "draft", created_at=ago(days=8))
    with_items = fake.add_order(acme.org, acme.member, "draft", created_at=ago(days=8))
    fake.add_item(with_items, acme.produce)
    recent = fake.add_order(acme.org, acme.member, "draft", created_at=ago(days=1))
    old_review = fake.add_order(acme.org, acme.member, "review", created_at=ago(days=30))

    resp = await client.get(URL, headers={"x-vercel-cron-id": "job-1"})
    assert resp.json()["cleanup"] == {"deleted_drafts": 1, "errors": []}

    remaining = {o["id"] for o in fake.rows("orders")}
    assert empty["id"] not in remaining
    assert {with_items["id"], recent["id"], old_review["id"]} <= remaining


@pytest.mark.asyncio
async def test_cron_reports_failed_deletes(client, fake, acme):
    fake.add_order(acme.org, acme.member, "draft", created_at=ago(days=8))
    fake.fail("orders", "delete", "permission denied")

    resp = await client.get(URL, headers={"x-vercel-cron-id": "job-1"})
    assert resp.status_code == 200
    cleanup = resp.json()["cleanup"]
    assert cleanup["deleted_drafts"] == 0
    assert "permission denied" in cleanup["errors"][0]
