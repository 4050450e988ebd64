from fastapi import APIRouter, Depends

from auth.domain.entities import User
from dashboard.application.services import fetch_snapshot
from dashboard.infrastructure.snapshot_cache import SnapshotCache
from dashboard.interfaces.schemas import DashboardResponse
from documents.infrastructure.unit_of_work import DbUnitOfWork
from shared.dependencies import get_current_user, get_snapshot_cache, get_uow

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardResponse)
async def dashboard(
    refresh: bool = False,
    current_user: User = Depends(get_current_user),
    uow: DbUnitOfWork = Depends(get_uow),
    cache: SnapshotCache = Depends(get_snapshot_cache),
):
    return await fetch_snapshot(uow, cache, current_user.id, force_bypass_cache=refresh)
