# api/routers/stats.py
from fastapi import APIRouter, Depends, Query

from backoffice.api.deps import current_actor, stats_service
from backoffice.api.schemas import GlobalStatsIn, MonthlyStatsIn
from backoffice.domain.actor import Actor
from backoffice.services.stats import StatsService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("")
async def get_stats(service: StatsService = Depends(stats_service)):
    return {"success": True, "data": await service.get_global_stats()}


@router.put("")
async def set_stats(
    body: GlobalStatsIn,
    actor: Actor = Depends(current_actor),
    service: StatsService = Depends(stats_service),
):
    stats = await service.set_global_stats(
        body.total_gains, body.total_places_sold, body.total_winners, actor=actor,
    )
    return {"success": True, "data": stats}


@router.get("/display")
async def display_stats(
    limit: int = Query(10, ge=1, le=50),
    service: StatsService = Depends(stats_service),
):
    return {"success": True, "data": await service.get_display_stats(limit)}


@router.get("/monthly")
async def monthly_stats(
    limit: int = Query(12, ge=1, le=120),
    service: StatsService = Depends(stats_service),
):
    return {"success": True, "data": await service.list_monthly_stats(limit)}


@router.post("/monthly")
async def add_monthly_stats(
    body: MonthlyStatsIn,
    actor: Actor = Depends(current_actor),
    service: StatsService = Depends(stats_service),
):
    month = await service.add_monthly_stats(
        body.month,
        gains=body.gains,
        places_sold=body.places_sold,
        winners=body.winners,
        contests=body.contests,
        actor=actor,
    )
    return {"success": True, "data": month}
