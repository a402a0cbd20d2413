# api/routers/weekly.py
from dataclasses import asdict
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from backoffice.api.deps import current_actor, scheduler, weekly_service
from backoffice.api.schemas import ParticipantIn
from backoffice.domain.actor import Actor
from backoffice.services.scheduler import DrawScheduler
from backoffice.services.weekly_contest import WeeklyContestService

router = APIRouter(prefix="/weekly-contest", tags=["weekly contest"])


@router.get("/current")
async def current_contest(service: WeeklyContestService = Depends(weekly_service)):
    contest = await service.find_current_weekly_contest()
    key = service.current_week_key()
    return {"success": True, "data": contest, "week_number": key.week_number, "year": key.year}


@router.post("", status_code=201)
async def create_weekly_contest(
    actor: Actor = Depends(current_actor),
    service: WeeklyContestService = Depends(weekly_service),
):
    return {"success": True, "data": await service.create_weekly_contest(actor=actor)}


@router.post("/next", status_code=201)
async def schedule_next_weekly_contest(
    actor: Actor = Depends(current_actor),
    service: WeeklyContestService = Depends(weekly_service),
):
    contest = await service.schedule_next_weekly_contest(actor=actor)
    return {"success": True, "data": contest, "created": contest is not None}


@router.post("/draws")
async def force_auto_draws(service: WeeklyContestService = Depends(weekly_service)):
    outcomes = await service.perform_auto_draws()
    return {"success": True, "data": outcomes, "drawn": len(outcomes)}


@router.post("/participate")
async def participate(body: ParticipantIn, service: WeeklyContestService = Depends(weekly_service)):
    participant, created = await service.participate(body.user_id)
    return {"success": True, "data": participant, "created": created}


@router.get("/participation/{user_id}")
async def check_participation(user_id: UUID, service: WeeklyContestService = Depends(weekly_service)):
    return {"success": True, "data": await service.check_participation(user_id)}


@router.get("/stats")
async def weekly_stats(
    year: Optional[int] = Query(None, ge=2000, le=9999),
    service: WeeklyContestService = Depends(weekly_service),
):
    return {"success": True, "data": await service.get_weekly_contest_stats(year)}


@router.get("/history")
async def weekly_history(
    limit: int = Query(10, ge=1, le=100),
    service: WeeklyContestService = Depends(weekly_service),
):
    return {"success": True, "data": await service.get_weekly_contest_history(limit)}


@router.post("/cleanup")
async def cleanup(service: WeeklyContestService = Depends(weekly_service)):
    return {"success": True, "deleted": await service.cleanup_old_contests()}


@router.get("/scheduler")
async def scheduler_status(draws: DrawScheduler = Depends(scheduler)):
    return {"success": True, "data": asdict(draws.status())}
