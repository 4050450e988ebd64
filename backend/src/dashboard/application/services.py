import logging
from dataclasses import replace
from datetime import datetime, timezone
from uuid import UUID

from dashboard.domain.entities import DashboardSnapshot, DocumentCard, UserSummary
from dashboard.infrastructure.snapshot_cache import SnapshotCache
from documents.domain.repository import UnitOfWork
from shared.exceptions import StoreError

logger = logging.getLogger(__name__)

LIST_LIMIT = 50


async def load_snapshot(uow: UnitOfWork, user_id: UUID) -> DashboardSnapshot:
    async with uow:
        uploaded = await uow.documents.list_uploaded_by(user_id, LIST_LIMIT)
        shared = await uow.documents.list_shared_with(user_id, LIST_LIMIT)
        users = await uow.users.list_excluding(user_id, LIST_LIMIT)

        uploaded_cards = [
            DocumentCard(document=doc, shares=await uow.shares.list_for_document(doc.id))
            for doc in uploaded
        ]
        shared_cards = []
        for doc in shared:
            own = await uow.shares.get_for_recipient(doc.id, user_id)
            shared_cards.append(DocumentCard(document=doc, shares=[own] if own else []))

    return DashboardSnapshot(
        uploaded=uploaded_cards,
        shared=shared_cards,
        users=[UserSummary(id=u.id, username=u.username) for u in users],
        fetched_at=datetime.now(timezone.utc),
    )


async def fetch_snapshot(
    uow: UnitOfWork,
    cache: SnapshotCache,
    user_id: UUID,
    force_bypass_cache: bool = False,
) -> DashboardSnapshot:
    cached = await cache.get(user_id)
    if cached and not force_bypass_cache and cache.is_fresh(cached):
        return cached

    try:
        snapshot = await load_snapshot(uow, user_id)
    except StoreError as e:
        if cached is None:
            raise
        logger.warning("Serving stale dashboard for %s: %s", user_id, e.message)
        return replace(cached, stale=True)

    await cache.put(user_id, snapshot)
    return snapshot


async def invalidate_dashboards(cache: SnapshotCache, user_ids: list[UUID]) -> None:
    """Drop cached snapshots for users whose dashboard a write just changed."""
    for user_id in dict.fromkeys(user_ids):
        await cache.force_refresh(user_id)
