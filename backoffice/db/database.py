# db/database.py
import logging
import random
import uuid
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional, ClassVar, Self, Any, Iterable, Sequence, Tuple

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.exc import IntegrityError

from backoffice.config import Settings
from backoffice.db.enums import ContestStatus, ParticipantStatus
from backoffice.db.models._base import Base, utcnow
from backoffice.db.models.audit_log import AuditLog
from backoffice.db.models.contest import Contest, ContestParticipant, ContestPrize, ContestWinner
from backoffice.db.models.contest_stats import STATS_ROW_ID, ContestStats, MonthlyContestStats
from backoffice.db.models.standalone_winner import StandaloneWinner
from backoffice.db.models.user import User
from backoffice.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from backoffice.db.schemas.contest import (
    ContestCreate, ContestListItem, ContestParticipantRead, ContestRead, ContestUpdate, DrawOutcome,
    ParticipantOverviewRow, WeeklyContestStats,
)
from backoffice.db.schemas.contest_stats import (
    ContestStatsRead, ContestStatsUpdate, MonthlyStatsRead, RecentWinner, StatsDelta,
)
from backoffice.db.schemas.standalone_winner import (
    StandaloneWinnerCreate, StandaloneWinnerRead, StandaloneWinnerUpdate,
)
from backoffice.db.schemas.user import UserCreate, UserRead
from backoffice.domain import contest_store
from backoffice.domain.actor import Actor, SYSTEM, actor_user_id
from backoffice.domain.contest_store import WinnerChange
from backoffice.domain.errors import (
    ContestCompletedError,
    ContestHasParticipantsError,
    ContestNotFoundError,
    DrawAlreadyCompletedError,
    DuplicateWeeklyContestError,
    InactiveUserError,
    NegativeStatsError,
    StandaloneWinnerNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from backoffice.domain.ranking import insert_at_position, move_position, remove_from_ranking
from backoffice.domain.weeks import month_key, parse_week_label, week_label
from backoffice.utils.sentinels import MISSING

logger = logging.getLogger(__name__)


def provided(v: object) -> bool:
    return v is not MISSING


def _floored(column, delta):
    """``column + delta`` evaluated in SQL, never below zero."""
    if not delta:
        return column
    return case((column + delta < 0, 0), else_=column + delta)


class DataBase():
    """
    Async SQLAlchemy database singleton.
    Usage:
        db = DataBase()  # same instance everywhere
        async with db.session() as s:
            ...
    """
    _instance: ClassVar[Optional["DataBase"]] = None

    def __new__(cls, *args: Any, **kwargs: Any) -> Self:
        if cls._instance is None:
            cls._instance = super().__new__(cls)

        return cls._instance

    def __init__(self, url: Optional[str] = None, echo: bool = False) -> None:
        if getattr(self, "_initialized", False):
            return

        url = url or Settings().database_url
        engine_kwargs: dict[str, Any] = {"echo": echo}
        if not url.startswith("sqlite"):
            engine_kwargs["pool_pre_ping"] = True
        self._engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        self._sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            bind=self._engine,
            expire_on_commit=False,
            autoflush=False,
        )

        self._initialized = True

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Provides an AsyncSession with safe commit/rollback semantics.
        """
        session: AsyncSession = self._sessionmaker()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # --- schema management helpers ---

    async def create_all(self) -> None:
        """
        Create tables based on Base metadata. Use only in dev/tests; prefer Alembic in prod.
        """
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    # ---------------------------------
    # Users
    # ---------------------------------

    async def create_user(self, data: UserCreate) -> UserRead:
        """
        Create a user and return its snapshot.
        On unique-constraint violation (email), re-raises IntegrityError for the caller to handle.
        """
        user = User(
            email=str(data.email).lower(),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            is_active=data.is_active,
            tg_id=data.tg_id,
            preferred_language=data.preferred_language,
        )

        async with self.session() as s:
            s.add(user)
            await s.flush()
            await s.refresh(user)

        return UserRead.model_validate(user)

    async def get_user_by_id(self, uid: Optional[uuid.UUID] = None) -> Optional[UserRead]:
        if uid is None:
            return None

        async with self.session() as s:
            user_row = await s.get(User, uid)

        return UserRead.model_validate(user_row) if user_row is not None else None

    async def get_users_by_ids(self, ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, UserRead]:
        wanted = {i for i in ids if i is not None}
        if not wanted:
            return {}

        async with self.session() as s:
            rows = (await s.execute(select(User).where(User.id.in_(wanted)))).scalars().all()

        return {r.id: UserRead.model_validate(r) for r in rows}

    # ---------------------------------
    # Contests
    # ---------------------------------

    async def _load_contest(self, s: AsyncSession, contest_id: uuid.UUID, *, lock: bool = False) -> Contest:
        stmt = select(Contest).where(Contest.id == contest_id)
        if lock:
            stmt = stmt.with_for_update()
        contest = (await s.execute(stmt)).scalar_one_or_none()
        if contest is None:
            raise ContestNotFoundError(f"Contest {contest_id} not found.")
        return contest

    async def _snapshot(self, s: AsyncSession, contest: Contest) -> ContestRead:
        await s.flush()
        await s.refresh(contest)
        return ContestRead.model_validate(contest)

    async def create_contest(self, payload: ContestCreate, *, created_by: Optional[uuid.UUID] = None) -> ContestRead:
        """
        Persist a new contest with its prize list.

        Weekly contests also bump ``total_contests`` on the stats ledger in the
        same transaction.

        Raises:
            InvalidDateRangeError: draw before end, or end before start.
            DuplicateWeeklyContestError: a contest already holds (week_number, year).
        """
        contest_store.validate_schedule(payload.start_date, payload.end_date, payload.draw_date)

        contest = Contest(
            title=payload.title,
            description=payload.description,
            type=payload.type,
            status=payload.status,
            is_weekly_contest=payload.is_weekly_contest,
            week_number=payload.week_number,
            year=payload.year,
            start_date=payload.start_date,
            end_date=payload.end_date,
            draw_date=payload.draw_date,
            auto_draw_enabled=payload.auto_draw_enabled,
            draw_completed=False,
            max_participants=payload.max_participants,
            current_participants=0,
            max_winners=payload.max_winners,
            rules=payload.rules,
            created_by_id=created_by,
            last_modified_by_id=created_by,
            prizes=[
                ContestPrize(
                    position=p.position,
                    name=p.name,
                    description=p.description,
                    value=p.value,
                    type=p.type,
                )
                for p in payload.prizes
            ],
            participants=[],
            winners=[],
        )

        async with self.session() as s:
            if payload.week_number is not None and payload.year is not None:
                clash = await s.execute(
                    select(Contest.id).where(Contest.week_number == payload.week_number, Contest.year == payload.year)
                )
                if clash.first() is not None:
                    raise DuplicateWeeklyContestError(payload.week_number, payload.year)

            s.add(contest)
            try:
                await s.flush()
            except IntegrityError as exc:
                if payload.week_number is not None and payload.year is not None:
                    raise DuplicateWeeklyContestError(payload.week_number, payload.year) from exc
                raise

            if payload.is_weekly_contest:
                await self._apply_stats_delta(s, StatsDelta(contests=1, month=month_key(payload.start_date)))

            return await self._snapshot(s, contest)

    async def get_contest(self, contest_id: uuid.UUID) -> Optional[ContestRead]:
        async with self.session() as s:
            contest = await s.get(Contest, contest_id)
            return ContestRead.model_validate(contest) if contest is not None else None

    async def get_weekly_contest(self, week_number: int, year: int) -> Optional[ContestRead]:
        async with self.session() as s:
            stmt = select(Contest).where(Contest.week_number == week_number, Contest.year == year)
            contest = (await s.execute(stmt)).scalar_one_or_none()
            return ContestRead.model_validate(contest) if contest is not None else None

    async def list_contests(
        self,
        *,
        limit: int,
        offset: int,
        status: Optional[ContestStatus] = None,
        contest_type: Optional[str] = None,
        is_weekly: Optional[bool] = None,
    ) -> Tuple[list[ContestListItem], int]:
        """Newest first by start date. Returns (items, total)."""
        limit = max(0, int(limit))
        offset = max(0, int(offset))

        filters = []
        if status is not None:
            filters.append(Contest.status == status)
        if contest_type is not None:
            filters.append(Contest.type == contest_type)
        if is_weekly is not None:
            filters.append(Contest.is_weekly_contest.is_(is_weekly))

        async with self.session() as s:
            total = int((await s.execute(select(func.count(Contest.id)).where(*filters))).scalar_one())
            if limit == 0:
                return [], total
            stmt = (
                select(Contest)
                .where(*filters)
                .order_by(Contest.start_date.desc(), Contest.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            rows = (await s.execute(stmt)).scalars().all()
            return [ContestListItem.model_validate(r) for r in rows], total

    async def list_weekly_contests(self, *, limit: int = 10) -> list[ContestRead]:
        async with self.session() as s:
            stmt = (
                select(Contest)
                .where(Contest.is_weekly_contest.is_(True))
                .order_by(Contest.year.desc(), Contest.week_number.desc())
                .limit(max(1, int(limit)))
            )
            rows = (await s.execute(stmt)).scalars().all()
            return [ContestRead.model_validate(r) for r in rows]

    async def weekly_contest_stats(self, year: int) -> WeeklyContestStats:
        async with self.session() as s:
            stmt = select(
                func.count(Contest.id),
                func.coalesce(func.sum(Contest.current_participants), 0),
                func.count(Contest.id).filter(Contest.status == ContestStatus.COMPLETED),
                func.count(Contest.id).filter(Contest.status == ContestStatus.ACTIVE),
            ).where(Contest.is_weekly_contest.is_(True), Contest.year == year)
            total, participants, completed, active = (await s.execute(stmt)).one()

        return WeeklyContestStats(
            year=year,
            total_contests=int(total or 0),
            total_participants=int(participants or 0),
            completed_contests=int(completed or 0),
            active_contests=int(active or 0),
        )

    async def update_contest(self, payload: ContestUpdate, *, modified_by: Optional[uuid.UUID] = None) -> ContestRead:
        """
        Partially update a contest.

        Raises:
            ContestNotFoundError: unknown id.
            ContestCompletedError: the contest is already completed.
            InvalidDateRangeError: resulting schedule is inconsistent.
            ValidationError: ``max_winners`` below the number of current winners.
        """
        async with self.session() as s:
            contest = await self._load_contest(s, payload.id, lock=True)
            if contest.status == ContestStatus.COMPLETED or contest.draw_completed:
                raise ContestCompletedError(f"Contest {contest.id} is completed and can no longer be edited.")

            if provided(payload.title):
                contest.title = payload.title
            if provided(payload.description):
                contest.description = payload.description
            if provided(payload.type):
                contest.type = payload.type
            if provided(payload.status):
                if payload.status == ContestStatus.COMPLETED:
                    raise ValidationError("Use finalize to complete a contest.")
                contest.status = payload.status
            if provided(payload.start_date):
                contest.start_date = payload.start_date
            if provided(payload.end_date):
                contest.end_date = payload.end_date
            if provided(payload.draw_date):
                contest.draw_date = payload.draw_date
            if provided(payload.auto_draw_enabled):
                contest.auto_draw_enabled = payload.auto_draw_enabled
            if provided(payload.max_participants):
                contest.max_participants = payload.max_participants
            if provided(payload.max_winners):
                if payload.max_winners < len(contest.winners):
                    raise ValidationError(
                        f"Contest already has {len(contest.winners)} winners, max_winners cannot be {payload.max_winners}."
                    )
                contest.max_winners = payload.max_winners
            if provided(payload.rules):
                contest.rules = payload.rules

            contest_store.validate_schedule(contest.start_date, contest.end_date, contest.draw_date)
            contest.last_modified_by_id = modified_by
            return await self._snapshot(s, contest)

    async def delete_contest(self, contest_id: uuid.UUID) -> None:
        async with self.session() as s:
            contest = await self._load_contest(s, contest_id, lock=True)
            if contest.participants:
                raise ContestHasParticipantsError(
                    f"Contest {contest_id} has {len(contest.participants)} participants and cannot be deleted."
                )
            await s.delete(contest)

    async def add_participant(
        self, contest_id: uuid.UUID, user_id: uuid.UUID, *, now: datetime
    ) -> Tuple[ContestParticipantRead, bool]:
        """
        Enrol a user. Returns ``(participant, created)``; ``created`` is False
        when the user was already enrolled.

        Raises:
            ContestNotFoundError, UserNotFoundError, InactiveUserError, ContestNotOpenError.
        """
        async with self.session() as s:
            user = await s.get(User, user_id)
            if user is None:
                raise UserNotFoundError(f"User {user_id} not found.")
            if not user.is_active:
                raise InactiveUserError(f"User {user_id} is inactive.")

            contest = await self._load_contest(s, contest_id, lock=True)
            created = contest_store.add_participant(contest, user_id, now=now)
            participant = created or contest_store.find_participant(contest, user_id)
            await s.flush()
            return ContestParticipantRead.model_validate(participant), created is not None

    async def remove_participant(
        self, contest_id: uuid.UUID, user_id: uuid.UUID, *, modified_by: Optional[uuid.UUID] = None, now: datetime
    ) -> ContestRead:
        async with self.session() as s:
            contest = await self._load_contest(s, contest_id, lock=True)
            change = contest_store.remove_participant(contest, user_id)
            await self._record_winner_change(s, change, now=now)
            contest.last_modified_by_id = modified_by
            return await self._snapshot(s, contest)

    async def select_winner(
        self,
        contest_id: uuid.UUID,
        user_id: uuid.UUID,
        position: int,
        *,
        prize: Optional[str] = None,
        notes: Optional[str] = None,
        selected_by: Actor = SYSTEM,
        now: datetime,
    ) -> ContestRead:
        async with self.session() as s:
            contest = await self._load_contest(s, contest_id, lock=True)
            change = contest_store.select_winner(
                contest, user_id, position, prize, selected_by=selected_by, now=now, notes=notes,
            )
            await self._record_winner_change(s, change, now=now)
            contest.last_modified_by_id = actor_user_id(selected_by)
            return await self._snapshot(s, contest)

    async def remove_winner(
        self, contest_id: uuid.UUID, user_id: uuid.UUID, *, modified_by: Optional[uuid.UUID] = None, now: datetime
    ) -> ContestRead:
        async with self.session() as s:
            contest = await self._load_contest(s, contest_id, lock=True)
            change = contest_store.remove_winner(contest, user_id)
            await self._record_winner_change(s, change, now=now)
            contest.last_modified_by_id = modified_by
            return await self._snapshot(s, contest)

    async def select_multiple_winners(
        self,
        contest_id: uuid.UUID,
        user_ids: Sequence[uuid.UUID],
        *,
        selected_by: Actor = SYSTEM,
        now: datetime,
        prizes: Optional[Sequence[Optional[str]]] = None,
        notes: Optional[str] = None,
    ) -> ContestRead:
        async with self.session() as s:
            contest = await self._load_contest(s, contest_id, lock=True)
            change = contest_store.select_multiple_winners(
                contest, user_ids, selected_by=selected_by, now=now, prizes=prizes, notes=notes,
            )
            await self._record_winner_change(s, change, now=now)
            contest.last_modified_by_id = actor_user_id(selected_by)
            return await self._snapshot(s, contest)

    async def _claim_draw(self, s: AsyncSession, contest_id: uuid.UUID, *, now: datetime) -> bool:
        """
        Conditional ``drawCompleted`` flip. True only for the caller whose
        UPDATE matched the row; everyone else must discard their work.
        """
        stmt = (
            update(Contest)
            .where(Contest.id == contest_id, Contest.draw_completed.is_(False))
            .values(
                draw_completed=True,
                draw_completed_at=now,
                status=ContestStatus.COMPLETED,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await s.execute(stmt)
        return result.rowcount == 1

    async def finalize_contest(self, contest_id: uuid.UUID, *, modified_by: Optional[uuid.UUID] = None, now: datetime) -> ContestRead:
        """
        Manually complete a contest without drawing.

        Raises:
            ContestNotFoundError: unknown id.
            DrawAlreadyCompletedError: the contest was already drawn or finalised.
        """
        async with self.session() as s:
            contest = await self._load_contest(s, contest_id, lock=True)
            if contest.draw_completed or not await self._claim_draw(s, contest.id, now=now):
                raise DrawAlreadyCompletedError(f"Contest {contest_id} is already completed.")
            contest_store.mark_completed(contest, now)
            contest.last_modified_by_id = modified_by
            return await self._snapshot(s, contest)

    async def list_due_for_draw(self, now: datetime) -> list[uuid.UUID]:
        async with self.session() as s:
            stmt = (
                select(Contest.id)
                .where(
                    Contest.auto_draw_enabled.is_(True),
                    Contest.draw_completed.is_(False),
                    Contest.status == ContestStatus.ACTIVE,
                    Contest.draw_date <= now,
                )
                .order_by(Contest.draw_date.asc())
            )
            return list((await s.execute(stmt)).scalars().all())

    async def perform_contest_draw(
        self,
        contest_id: uuid.UUID,
        *,
        now: datetime,
        rng: random.Random,
        count: Optional[int] = None,
    ) -> Optional[DrawOutcome]:
        """
        Run the automatic draw of one contest.

        Winners are sampled first, then the contest is claimed with a
        conditional update. When the claim matches no row (another process
        drew it, or it is no longer due) the sample is discarded and ``None``
        is returned. Winners picked beforehand keep their positions; drawn users
        fill the free ones. Winner list, completion flags and stats are committed
        together.
        """
        async with self.session() as s:
            contest = await self._load_contest(s, contest_id, lock=True)
            if not contest_store.is_draw_due(contest, now):
                return None

            picked = contest_store.draw_winners(contest, rng, count)
            if not await self._claim_draw(s, contest.id, now=now):
                logger.info("Contest %s was drawn concurrently, discarding %d picks", contest.id, len(picked))
                return None

            contest_store.mark_completed(contest, now)
            change = WinnerChange()
            if picked:
                change = contest_store.add_drawn_winners(contest, picked, now=now, selected_by=SYSTEM)
            await self._record_winner_change(s, change, now=now)

            snapshot = await self._snapshot(s, contest)
            added = {w.id for w in change.added}
            return DrawOutcome(contest=snapshot, winners=[w for w in snapshot.winners if w.id in added])

    async def list_all_participants(self, *, limit: Optional[int] = None) -> list[ParticipantOverviewRow]:
        """Flat participant rows across all contests, most recent enrolment first."""
        async with self.session() as s:
            stmt = (
                select(ContestParticipant, Contest, User)
                .join(Contest, ContestParticipant.contest_id == Contest.id)
                .join(User, ContestParticipant.user_id == User.id)
                .order_by(ContestParticipant.joined_at.desc())
            )
            if limit:
                stmt = stmt.limit(int(limit))
            rows = (await s.execute(stmt)).all()

        result: list[ParticipantOverviewRow] = []
        for participant, contest, user in rows:
            full_name = " ".join(p for p in (user.first_name, user.last_name) if p)
            result.append(
                ParticipantOverviewRow(
                    user_id=user.id,
                    user_email=user.email,
                    user_full_name=full_name,
                    contest_id=contest.id,
                    contest_title=contest.title,
                    contest_week=contest.week_number,
                    joined_at=participant.joined_at,
                    status=ParticipantStatus.WINNER if participant.is_winner else ParticipantStatus.PARTICIPANT,
                    winner_position=participant.position if participant.is_winner else None,
                    winner_prize=participant.prize if participant.is_winner else None,
                )
            )
        return result

    async def delete_completed_weekly_contests(self, before: datetime) -> int:
        """Remove completed weekly contests whose draw finished before ``before``."""
        async with self.session() as s:
            stmt = select(Contest).where(
                Contest.is_weekly_contest.is_(True),
                Contest.status == ContestStatus.COMPLETED,
                func.coalesce(Contest.draw_completed_at, Contest.end_date) < before,
            )
            rows = (await s.execute(stmt)).scalars().all()
            for contest in rows:
                await s.delete(contest)
            return len(rows)

    async def recent_contest_winners(self, *, limit: int = 10) -> list[RecentWinner]:
        async with self.session() as s:
            stmt = (
                select(ContestWinner, Contest.title, User.first_name, User.last_name)
                .join(Contest, ContestWinner.contest_id == Contest.id)
                .join(User, ContestWinner.user_id == User.id)
                .order_by(ContestWinner.selected_at.desc(), ContestWinner.position.asc())
                .limit(max(1, int(limit)))
            )
            rows = (await s.execute(stmt)).all()

        return [
            RecentWinner(
                contest_title=title,
                draw_date=winner.selected_at,
                first_name=first_name or "",
                last_name=last_name or "",
                prize=winner.prize,
                amount=float(winner.amount or 0),
            )
            for winner, title, first_name, last_name in rows
        ]

    async def _record_winner_change(self, s: AsyncSession, change: WinnerChange, *, now: datetime) -> None:
        if not change:
            return
        await self._apply_stats_delta(
            s,
            StatsDelta(winners=change.winners_delta, gains=change.gains_delta, month=month_key(now)),
        )

    # ---------------------------------
    # Standalone winners
    # ---------------------------------

    async def _week_scope(self, s: AsyncSession, week: str) -> list[StandaloneWinner]:
        """Active rows of one week, locked, ordered by position."""
        stmt = (
            select(StandaloneWinner)
            .where(StandaloneWinner.week_of_year == week, StandaloneWinner.is_active.is_(True))
            .order_by(StandaloneWinner.position.asc())
            .with_for_update()
        )
        return list((await s.execute(stmt)).scalars().all())

    async def _load_standalone(self, s: AsyncSession, winner_id: uuid.UUID) -> StandaloneWinner:
        row = await s.get(StandaloneWinner, winner_id, with_for_update=True)
        if row is None:
            raise StandaloneWinnerNotFoundError(f"Standalone winner {winner_id} not found.")
        return row

    async def create_standalone_winners(
        self,
        items: Sequence[StandaloneWinnerCreate],
        *,
        week_of_year: Optional[str] = None,
        now: datetime,
    ) -> list[StandaloneWinnerRead]:
        """
        Insert winners one by one, each at its requested position (default:
        after the last active row of its week). Occupied positions shift down.
        """
        if not items:
            raise ValidationError("At least one winner is required.")
        if week_of_year is not None:
            try:
                week_of_year = parse_week_label(week_of_year).label
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

        async with self.session() as s:
            scopes: dict[str, list[StandaloneWinner]] = {}
            created: list[StandaloneWinner] = []
            for item in items:
                draw_date = item.draw_date or now
                week = week_of_year or week_label(draw_date)
                if week not in scopes:
                    scopes[week] = await self._week_scope(s, week)

                row = StandaloneWinner(
                    first_name=item.first_name,
                    last_name=item.last_name,
                    email=str(item.email) if item.email is not None else None,
                    username=item.username,
                    eth_address=item.eth_address,
                    user_id=item.user_id,
                    prize=item.prize,
                    amount=item.amount,
                    draw_date=draw_date,
                    week_of_year=week,
                    is_active=True,
                    notes=item.notes or "",
                )
                insert_at_position(scopes[week], row, item.position)
                s.add(row)
                created.append(row)

            await s.flush()
            await self._record_standalone_stats(s, created, sign=1)
            return [StandaloneWinnerRead.model_validate(r) for r in created]

    async def get_standalone_winner(self, winner_id: uuid.UUID) -> Optional[StandaloneWinnerRead]:
        async with self.session() as s:
            row = await s.get(StandaloneWinner, winner_id)
            return StandaloneWinnerRead.model_validate(row) if row is not None else None

    async def update_standalone_winner(self, payload: StandaloneWinnerUpdate) -> StandaloneWinnerRead:
        """
        Partially update a standalone winner, keeping each week's active
        positions dense.

        A position change moves the row within its week. Deactivating detaches
        it from the ranking; reactivating re-inserts it (at the requested
        position, else at its previous one). Changing ``draw_date`` to another
        week moves it to the end of that week unless a position is given.
        """
        async with self.session() as s:
            row = await self._load_standalone(s, payload.id)

            if provided(payload.first_name):
                row.first_name = payload.first_name
            if provided(payload.last_name):
                row.last_name = payload.last_name
            if provided(payload.email):
                row.email = str(payload.email) if payload.email is not None else None
            if provided(payload.username):
                row.username = payload.username
            if provided(payload.eth_address):
                row.eth_address = payload.eth_address
            if provided(payload.user_id):
                row.user_id = payload.user_id
            if provided(payload.prize):
                row.prize = payload.prize
            if provided(payload.amount):
                row.amount = payload.amount
            if provided(payload.notes):
                row.notes = payload.notes

            old_week = row.week_of_year
            new_week = old_week
            if provided(payload.draw_date):
                row.draw_date = payload.draw_date
                new_week = week_label(payload.draw_date)
            requested = payload.position if provided(payload.position) else None
            was_active = row.is_active
            want_active = payload.is_active if provided(payload.is_active) else was_active

            if was_active:
                old_scope = await self._week_scope(s, old_week)
                if not want_active or new_week != old_week:
                    remove_from_ranking(old_scope, row)
                elif requested is not None:
                    move_position(old_scope, row, requested)

            if want_active and (not was_active or new_week != old_week):
                new_scope = await self._week_scope(s, new_week)
                if requested is None and new_week == old_week:
                    requested = row.position
                insert_at_position(new_scope, row, requested)
            elif not want_active and requested is not None:
                row.position = requested

            row.week_of_year = new_week
            row.is_active = want_active

            await s.flush()
            await s.refresh(row)
            return StandaloneWinnerRead.model_validate(row)

    async def delete_standalone_winner(self, winner_id: uuid.UUID, *, now: datetime) -> StandaloneWinnerRead:
        """Delete one row, closing the gap in its week and reverting its stats."""
        async with self.session() as s:
            row = await self._load_standalone(s, winner_id)
            if row.is_active:
                scope = await self._week_scope(s, row.week_of_year)
                remove_from_ranking(scope, row)
            snapshot = StandaloneWinnerRead.model_validate(row)
            await s.delete(row)
            await s.flush()
            await self._record_standalone_stats(s, [row], sign=-1)
            return snapshot

    async def clear_week_winners(self, week: str) -> int:
        try:
            week = parse_week_label(week).label
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        async with self.session() as s:
            rows = (
                await s.execute(select(StandaloneWinner).where(StandaloneWinner.week_of_year == week))
            ).scalars().all()
            if not rows:
                return 0
            await self._record_standalone_stats(s, rows, sign=-1)
            await s.execute(
                delete(StandaloneWinner)
                .where(StandaloneWinner.week_of_year == week)
                .execution_options(synchronize_session=False)
            )
            return len(rows)

    async def list_standalone_winners(
        self, *, week: Optional[str] = None, active: Optional[bool] = None
    ) -> list[StandaloneWinnerRead]:
        async with self.session() as s:
            stmt = select(StandaloneWinner)
            if week:
                stmt = stmt.where(StandaloneWinner.week_of_year == week)
            if active is not None:
                stmt = stmt.where(StandaloneWinner.is_active.is_(active))
            if week:
                stmt = stmt.order_by(StandaloneWinner.position.asc())
            else:
                stmt = stmt.order_by(StandaloneWinner.draw_date.desc(), StandaloneWinner.position.asc())
            rows = (await s.execute(stmt)).scalars().all()
            return [StandaloneWinnerRead.model_validate(r) for r in rows]

    async def recent_standalone_winners(self, *, limit: int = 10) -> list[StandaloneWinnerRead]:
        async with self.session() as s:
            stmt = (
                select(StandaloneWinner)
                .where(StandaloneWinner.is_active.is_(True))
                .order_by(StandaloneWinner.draw_date.desc(), StandaloneWinner.position.asc())
                .limit(max(1, int(limit)))
            )
            rows = (await s.execute(stmt)).scalars().all()
            return [StandaloneWinnerRead.model_validate(r) for r in rows]

    async def first_place_standalone_winner(self) -> Optional[StandaloneWinnerRead]:
        async with self.session() as s:
            stmt = (
                select(StandaloneWinner)
                .where(StandaloneWinner.position == 1, StandaloneWinner.is_active.is_(True))
                .order_by(StandaloneWinner.draw_date.desc())
                .limit(1)
            )
            row = (await s.execute(stmt)).scalar_one_or_none()
            return StandaloneWinnerRead.model_validate(row) if row is not None else None

    async def _record_standalone_stats(self, s: AsyncSession, rows: Iterable[StandaloneWinner], *, sign: int) -> None:
        per_month: dict[str, list[float]] = defaultdict(list)
        for row in rows:
            per_month[month_key(row.draw_date)].append(float(row.amount or 0))
        for month, amounts in per_month.items():
            await self._apply_stats_delta(
                s, StatsDelta(winners=sign * len(amounts), gains=sign * sum(amounts), month=month)
            )

    # ---------------------------------
    # Stats ledger
    # ---------------------------------

    async def _ensure_stats_row(self, s: AsyncSession) -> ContestStats:
        row = await s.get(ContestStats, STATS_ROW_ID)
        if row is None:
            row = ContestStats(
                id=STATS_ROW_ID,
                total_gains=0,
                total_places_sold=0,
                total_winners=0,
                total_contests=0,
                last_updated=utcnow(),
                updated_by="system",
            )
            s.add(row)
            await s.flush()
        return row

    async def _ensure_month_row(self, s: AsyncSession, month: str) -> MonthlyContestStats:
        row = await s.get(MonthlyContestStats, month)
        if row is None:
            row = MonthlyContestStats(month=month, gains=0, places_sold=0, winners=0, contests=0)
            s.add(row)
            await s.flush()
        return row

    async def _apply_stats_delta(self, s: AsyncSession, delta: StatsDelta, *, updated_by: str = "system") -> None:
        """Atomic, floored increments on the global row and the month row."""
        if delta.is_empty():
            return

        await self._ensure_stats_row(s)
        await s.execute(
            update(ContestStats)
            .where(ContestStats.id == STATS_ROW_ID)
            .values(
                total_gains=_floored(ContestStats.total_gains, delta.gains),
                total_places_sold=_floored(ContestStats.total_places_sold, delta.places_sold),
                total_winners=_floored(ContestStats.total_winners, delta.winners),
                total_contests=_floored(ContestStats.total_contests, delta.contests),
                last_updated=utcnow(),
                updated_by=updated_by,
            )
            .execution_options(synchronize_session=False)
        )

        if delta.month:
            await self._ensure_month_row(s, delta.month)
            await s.execute(
                update(MonthlyContestStats)
                .where(MonthlyContestStats.month == delta.month)
                .values(
                    gains=_floored(MonthlyContestStats.gains, delta.gains),
                    places_sold=_floored(MonthlyContestStats.places_sold, delta.places_sold),
                    winners=_floored(MonthlyContestStats.winners, delta.winners),
                    contests=_floored(MonthlyContestStats.contests, delta.contests),
                )
                .execution_options(synchronize_session=False)
            )

    async def adjust_stats(self, delta: StatsDelta, *, updated_by: str = "system") -> ContestStatsRead:
        async with self.session() as s:
            await self._apply_stats_delta(s, delta, updated_by=updated_by)
        return await self.get_global_stats()

    async def get_global_stats(self) -> ContestStatsRead:
        """Read the singleton row, creating it with zeroes on first access."""
        async with self.session() as s:
            row = await self._ensure_stats_row(s)
            return ContestStatsRead.model_validate(row)

    async def set_global_stats(self, payload: ContestStatsUpdate, *, updated_by: str) -> ContestStatsRead:
        """Manual override of the cumulative totals. ``total_contests`` is left untouched."""
        if payload.total_gains < 0 or payload.total_places_sold < 0 or payload.total_winners < 0:
            raise NegativeStatsError("Stats values must be non-negative.")

        async with self.session() as s:
            row = await self._ensure_stats_row(s)
            row.total_gains = payload.total_gains
            row.total_places_sold = payload.total_places_sold
            row.total_winners = payload.total_winners
            row.last_updated = utcnow()
            row.updated_by = updated_by
            await s.flush()
            return ContestStatsRead.model_validate(row)

    async def add_monthly_stats(self, payload: MonthlyStatsRead) -> MonthlyStatsRead:
        """Add the given amounts to one month, creating the row when needed."""
        async with self.session() as s:
            await self._ensure_month_row(s, payload.month)
            await s.execute(
                update(MonthlyContestStats)
                .where(MonthlyContestStats.month == payload.month)
                .values(
                    gains=_floored(MonthlyContestStats.gains, payload.gains),
                    places_sold=_floored(MonthlyContestStats.places_sold, payload.places_sold),
                    winners=_floored(MonthlyContestStats.winners, payload.winners),
                    contests=_floored(MonthlyContestStats.contests, payload.contests),
                )
                .execution_options(synchronize_session=False)
            )

        async with self.session() as s:
            row = await s.get(MonthlyContestStats, payload.month)
            return MonthlyStatsRead.model_validate(row)

    async def list_monthly_stats(self, *, limit: int = 12) -> list[MonthlyStatsRead]:
        async with self.session() as s:
            stmt = select(MonthlyContestStats).order_by(MonthlyContestStats.month.desc()).limit(max(1, int(limit)))
            rows = (await s.execute(stmt)).scalars().all()
            return [MonthlyStatsRead.model_validate(r) for r in rows]

    # ---------------------------------
    # Audit log helpers
    # ---------------------------------

    async def create_audit_log(self, payload: AuditLogCreate) -> AuditLogRead:
        """Persist a new audit log entry."""
        async with self.session() as s:
            record = AuditLog(
                actor_id=payload.actor_id,
                action=payload.action,
                payload=dict(payload.payload or {}),
            )
            s.add(record)
            await s.flush()
            await s.refresh(record)
            return AuditLogRead.model_validate(record)

    async def list_audit_logs(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        actor_id: uuid.UUID | None = None,
        action: str | None = None,
    ) -> tuple[list[AuditLogRead], int]:
        """Return paginated audit log entries filtered by actor/action."""
        limit = max(0, int(limit))
        offset = max(0, int(offset))

        async with self.session() as s:
            stmt = select(AuditLog).order_by(AuditLog.created_at.desc())
            count_stmt = select(func.count(AuditLog.id))
            if actor_id:
                stmt = stmt.where(AuditLog.actor_id == actor_id)
                count_stmt = count_stmt.where(AuditLog.actor_id == actor_id)
            if action:
                stmt = stmt.where(AuditLog.action == action)
                count_stmt = count_stmt.where(AuditLog.action == action)

            if limit:
                stmt = stmt.limit(limit)
            if offset:
                stmt = stmt.offset(offset)

            rows = (await s.execute(stmt)).scalars().all()
            total = int((await s.execute(count_stmt)).scalar_one())

        return [AuditLogRead.model_validate(row) for row in rows], total
