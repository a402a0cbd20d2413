# api/deps.py
from typing import Optional
from uuid import UUID

from fastapi import Header, HTTPException

from backoffice.db.enums import UserRole
from backoffice.domain.actor import Actor, Admin, SYSTEM
from backoffice.services.contest import ContestService
from backoffice.services.scheduler import DrawScheduler
from backoffice.services.standalone_winner import StandaloneWinnerService
from backoffice.services.stats import StatsService
from backoffice.services.user import UserService
from backoffice.services.weekly_contest import WeeklyContestService


async def current_actor(x_admin_id: Optional[UUID] = Header(default=None)) -> Actor:
    """
    Acting admin from the ``X-Admin-Id`` header; requests without it act as
    the system. Authentication happens upstream.
    """
    if x_admin_id is None:
        return SYSTEM
    user = await UserService().require_user(x_admin_id)
    if user.role != UserRole.ADMIN or not user.is_active:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return Admin(user.id)


def contest_service() -> ContestService:
    return ContestService()


def weekly_service() -> WeeklyContestService:
    return WeeklyContestService()


def standalone_service() -> StandaloneWinnerService:
    return StandaloneWinnerService()


def stats_service() -> StatsService:
    return StatsService()


def scheduler() -> DrawScheduler:
    return DrawScheduler()
