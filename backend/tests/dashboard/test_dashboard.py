from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import PDF_BYTES, create_user_and_get_headers
from dashboard.application.services import fetch_snapshot, invalidate_dashboards, load_snapshot
from dashboard.domain.entities import DashboardSnapshot
from dashboard.infrastructure.snapshot_cache import SnapshotCache
from documents.application.services import create_document, record_approval
from shared.exceptions import StoreError


class FailingUnitOfWork:
    """Stands in for an unreachable database."""

    async def __aenter__(self):
        raise StoreError("Database operation failed: connection refused")

    async def __aexit__(self, *args):
        return False


class BrokenRedis:
    async def get(self, key):
        raise RedisConnectionError("down")

    async def set(self, key, value, ex=None):
        raise RedisConnectionError("down")

    async def delete(self, *keys):
        raise RedisConnectionError("down")


@pytest.fixture
async def doc(uow, blobs, alice, bob, carol):
    return await create_document(
        uow, blobs, "Contract", "contract.pdf", PDF_BYTES, alice.id, [bob.id, carol.id]
    )


async def test_load_snapshot(uow, doc, alice, bob, carol):
    await record_approval(uow, doc.id, bob.id, "approve", 1)

    uploader_view = await load_snapshot(uow, alice.id)
    assert [c.document.id for c in uploader_view.uploaded] == [doc.id]
    assert len(uploader_view.uploaded[0].shares) == 2
    assert uploader_view.shared == []
    assert [u.username for u in uploader_view.users] == ["bob", "carol"]

    recipient_view = await load_snapshot(uow, bob.id)
    assert recipient_view.uploaded == []
    card = recipient_view.shared[0]
    assert card.document.id == doc.id
    assert [s.shared_with_user_id for s in card.shares] == [bob.id]
    assert card.shares[0].is_approved is True
    assert recipient_view.stale is False


async def test_fetch_uses_fresh_cache(uow, cache, fake_redis, doc, alice):
    first = await fetch_snapshot(uow, cache, alice.id)
    assert fake_redis.expiry[f"dashboard:{alice.id}"] == 3600

    second = await fetch_snapshot(FailingUnitOfWork(), cache, alice.id)
    assert second.fetched_at == first.fetched_at
    assert second.stale is False


async def test_force_bypass_reloads(uow, cache, doc, alice):
    first = await fetch_snapshot(uow, cache, alice.id)
    second = await fetch_snapshot(uow, cache, alice.id, force_bypass_cache=True)
    assert second.fetched_at >= first.fetched_at
    assert second is not first


async def test_stale_snapshot_served_when_store_fails(uow, cache, doc, alice):
    snapshot = await load_snapshot(uow, alice.id)
    old = replace(snapshot, fetched_at=datetime.now(timezone.utc) - timedelta(minutes=5))
    await cache.put(alice.id, old)

    result = await fetch_snapshot(FailingUnitOfWork(), cache, alice.id)
    assert result.stale is True
    assert [c.document.id for c in result.uploaded] == [doc.id]


async def test_store_failure_without_cache(cache, alice):
    with pytest.raises(StoreError):
        await fetch_snapshot(FailingUnitOfWork(), cache, alice.id)


async def test_cache_errors_are_misses(uow, doc, alice):
    cache = SnapshotCache(BrokenRedis())
    snapshot = await fetch_snapshot(uow, cache, alice.id)
    assert [c.document.id for c in snapshot.uploaded] == [doc.id]
    await cache.force_refresh(alice.id)


async def test_force_refresh_drops_entry(uow, cache, fake_redis, doc, alice):
    await fetch_snapshot(uow, cache, alice.id)
    await cache.force_refresh(alice.id)
    assert await cache.get(alice.id) is None


def test_is_fresh():
    cache = SnapshotCache(None, stale_after=30)
    fetched = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    snapshot = DashboardSnapshot(uploaded=[], shared=[], users=[], fetched_at=fetched)
    assert cache.is_fresh(snapshot, now=fetched + timedelta(seconds=10))
    assert not cache.is_fresh(snapshot, now=fetched + timedelta(seconds=31))


async def test_dashboard_route(client):
    _, alice = await create_user_and_get_headers(client, "alice")
    bob_id, bob = await create_user_and_get_headers(client, "bob")
    await client.post(
        "/api/documents",
        data={"title": "Contract", "recipient_ids": [bob_id]},
        files={"file": ("contract.pdf", PDF_BYTES, "application/pdf")},
        headers=alice,
    )

    response = await client.get("/api/dashboard", headers=bob)
    assert response.status_code == 200
    data = response.json()
    assert data["stale"] is False
    assert data["uploaded"] == []
    assert data["shared"][0]["document"]["title"] == "Contract"
    assert data["shared"][0]["shares"][0]["shared_with_user_id"] == bob_id

    response = await client.get("/api/dashboard?refresh=true", headers=bob)
    assert response.status_code == 200


async def test_dashboard_requires_auth(client):
    response = await client.get("/api/dashboard")
    assert response.status_code in (401, 403)


async def test_unreadable_snapshot_is_a_miss(uow, cache, fake_redis, doc, alice):
    fake_redis.data[f"dashboard:{alice.id}"] = b'{"uploaded": "not a list"}'
    assert await cache.get(alice.id) is None

    snapshot = await fetch_snapshot(uow, cache, alice.id)
    assert [c.document.id for c in snapshot.uploaded] == [doc.id]
    assert (await cache.get(alice.id)).fetched_at == snapshot.fetched_at


async def test_invalidate_dashboards(uow, cache, doc, alice, bob):
    await fetch_snapshot(uow, cache, alice.id)
    await fetch_snapshot(uow, cache, bob.id)

    await invalidate_dashboards(cache, [alice.id, bob.id, alice.id])
    assert await cache.get(alice.id) is None
    assert await cache.get(bob.id) is None


async def test_approval_refreshes_uploader_dashboard(client):
    _, alice = await create_user_and_get_headers(client, "alice")
    bob_id, bob = await create_user_and_get_headers(client, "bob")
    doc = (
        await client.post(
            "/api/documents",
            data={"title": "Contract", "recipient_ids": [bob_id]},
            files={"file": ("contract.pdf", PDF_BYTES, "application/pdf")},
            headers=alice,
        )
    ).json()

    before = (await client.get("/api/dashboard", headers=alice)).json()
    assert before["uploaded"][0]["document"]["status"] == "pending"

    await client.post(
        f"/api/documents/{doc['id']}/approval",
        json={"action": "approve", "version": 1},
        headers=bob,
    )
    after = (await client.get("/api/dashboard", headers=alice)).json()
    assert after["uploaded"][0]["document"]["status"] == "approved"
    assert after["uploaded"][0]["shares"][0]["is_approved"] is True
