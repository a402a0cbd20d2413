# api/routers/standalone_winners.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from backoffice.api.deps import current_actor, standalone_service
from backoffice.api.schemas import StandaloneWinnerPatch, StandaloneWinnersIn
from backoffice.db.schemas.standalone_winner import StandaloneWinnerUpdate
from backoffice.domain.actor import Actor
from backoffice.services.standalone_winner import StandaloneWinnerService

router = APIRouter(prefix="/standalone-winners", tags=["standalone winners"])

NULLABLE = {"email", "username", "eth_address", "user_id"}


@router.get("")
async def list_winners(
    week: Optional[str] = None,
    active: Optional[bool] = None,
    service: StandaloneWinnerService = Depends(standalone_service),
):
    return {"success": True, "data": await service.list_winners(week=week, active=active)}


@router.get("/current-week")
async def current_week(service: StandaloneWinnerService = Depends(standalone_service)):
    week, winners = await service.current_week_winners()
    return {"success": True, "data": winners, "week": week}


@router.get("/recent")
async def recent(
    limit: int = Query(10, ge=1, le=100),
    service: StandaloneWinnerService = Depends(standalone_service),
):
    return {"success": True, "data": await service.recent_winners(limit)}


@router.get("/first-place")
async def first_place(
    user_id: Optional[UUID] = None,
    service: StandaloneWinnerService = Depends(standalone_service),
):
    return {"success": True, "data": await service.first_place_winner(user_id)}


@router.post("", status_code=201)
async def create_winners(
    body: StandaloneWinnersIn,
    actor: Actor = Depends(current_actor),
    service: StandaloneWinnerService = Depends(standalone_service),
):
    created = await service.create_winners(body.winners, week_of_year=body.week_of_year, actor=actor)
    return {"success": True, "data": created}


@router.put("/{winner_id}")
async def update_winner(
    winner_id: UUID,
    body: StandaloneWinnerPatch,
    actor: Actor = Depends(current_actor),
    service: StandaloneWinnerService = Depends(standalone_service),
):
    payload = StandaloneWinnerUpdate(id=winner_id, **body.provided_fields(nullable=NULLABLE))
    return {"success": True, "data": await service.update_winner(payload, actor=actor)}


@router.delete("/week/{week}")
async def clear_week(
    week: str,
    actor: Actor = Depends(current_actor),
    service: StandaloneWinnerService = Depends(standalone_service),
):
    return {"success": True, "deleted": await service.clear_week(week, actor=actor)}


@router.delete("/{winner_id}")
async def delete_winner(
    winner_id: UUID,
    actor: Actor = Depends(current_actor),
    service: StandaloneWinnerService = Depends(standalone_service),
):
    return {"success": True, "data": await service.delete_winner(winner_id, actor=actor)}
