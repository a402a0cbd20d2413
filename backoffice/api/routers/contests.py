# api/routers/contests.py
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from backoffice.api.deps import contest_service, current_actor
from backoffice.api.schemas import BulkWinnersIn, ContestPatch, ParticipantIn, WinnerIn
from backoffice.db.enums import ContestStatus, ContestType
from backoffice.db.schemas.contest import ContestCreate, ContestUpdate
from backoffice.domain.actor import Actor
from backoffice.services.contest import ContestService

router = APIRouter(prefix="/contests", tags=["contests"])


@router.get("")
async def list_contests(
    page: int = Query(0, ge=0),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[ContestStatus] = None,
    type: Optional[ContestType] = None,
    service: ContestService = Depends(contest_service),
):
    items, total = await service.list_contests_page(page, page_size, status=status, contest_type=type)
    return {"success": True, "data": items, "total": total, "page": page, "page_size": page_size}


@router.post("", status_code=201)
async def create_contest(
    payload: ContestCreate,
    actor: Actor = Depends(current_actor),
    service: ContestService = Depends(contest_service),
):
    return {"success": True, "data": await service.create_contest(payload, actor=actor)}


@router.get("/participants")
async def list_all_participants(
    limit: Optional[int] = Query(None, ge=1),
    service: ContestService = Depends(contest_service),
):
    rows = await service.list_all_participants(limit)
    return {"success": True, "data": rows, "total": len(rows)}


@router.get("/{contest_id}")
async def get_contest(contest_id: UUID, service: ContestService = Depends(contest_service)):
    return {"success": True, "data": await service.require_contest(contest_id)}


@router.patch("/{contest_id}")
async def update_contest(
    contest_id: UUID,
    body: ContestPatch,
    actor: Actor = Depends(current_actor),
    service: ContestService = Depends(contest_service),
):
    payload = ContestUpdate(id=contest_id, **body.provided_fields(nullable={"max_participants", "rules"}))
    return {"success": True, "data": await service.update_contest(payload, actor=actor)}


@router.delete("/{contest_id}")
async def delete_contest(
    contest_id: UUID,
    actor: Actor = Depends(current_actor),
    service: ContestService = Depends(contest_service),
):
    await service.delete_contest(contest_id, actor=actor)
    return {"success": True}


@router.post("/{contest_id}/finalize")
async def finalize_contest(
    contest_id: UUID,
    actor: Actor = Depends(current_actor),
    service: ContestService = Depends(contest_service),
):
    return {"success": True, "data": await service.finalize_contest(contest_id, actor=actor)}


@router.post("/{contest_id}/participants")
async def add_participant(
    contest_id: UUID,
    body: ParticipantIn,
    actor: Actor = Depends(current_actor),
    service: ContestService = Depends(contest_service),
):
    participant, created = await service.add_participant(contest_id, body.user_id, actor=actor)
    return {"success": True, "data": participant, "created": created}


@router.delete("/{contest_id}/participants/{user_id}")
async def remove_participant(
    contest_id: UUID,
    user_id: UUID,
    actor: Actor = Depends(current_actor),
    service: ContestService = Depends(contest_service),
):
    return {"success": True, "data": await service.remove_participant(contest_id, user_id, actor=actor)}


@router.post("/{contest_id}/winners")
async def select_winner(
    contest_id: UUID,
    body: WinnerIn,
    actor: Actor = Depends(current_actor),
    service: ContestService = Depends(contest_service),
):
    contest = await service.select_winner(
        contest_id, body.user_id, body.position, prize=body.prize, notes=body.notes, actor=actor,
    )
    return {"success": True, "data": contest}


@router.post("/{contest_id}/winners/bulk")
async def select_multiple_winners(
    contest_id: UUID,
    body: BulkWinnersIn,
    actor: Actor = Depends(current_actor),
    service: ContestService = Depends(contest_service),
):
    contest = await service.select_multiple_winners(
        contest_id, body.user_ids, prizes=body.prizes, notes=body.notes, actor=actor,
    )
    return {"success": True, "data": contest}


@router.delete("/{contest_id}/winners/{user_id}")
async def remove_winner(
    contest_id: UUID,
    user_id: UUID,
    actor: Actor = Depends(current_actor),
    service: ContestService = Depends(contest_service),
):
    return {"success": True, "data": await service.remove_winner(contest_id, user_id, actor=actor)}
