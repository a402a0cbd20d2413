# domain/errors.py
"""Error taxonomy shared by the contest store, services and the admin API.

Three families matter to callers:

* :class:`ValidationError` - the input itself is wrong; resubmitting the same
  request can never succeed.
* :class:`StateConflictError` - the input is fine but the current state does
  not allow it; re-fetch and retry deliberately.
* :class:`NotFoundError` - the referenced entity does not exist.
"""


class BackofficeError(Exception):
    """Root of every domain error raised by the back office."""


class ValidationError(BackofficeError):
    pass


class StateConflictError(BackofficeError):
    pass


class NotFoundError(BackofficeError, LookupError):
    pass


# --- validation ---

class NotAParticipantError(ValidationError):
    def __init__(self, user_id: object) -> None:
        super().__init__(f"User {user_id} is not a participant of this contest.")
        self.user_id = user_id


class InvalidPositionError(ValidationError):
    def __init__(self, position: object, max_position: int) -> None:
        super().__init__(f"Position {position} is outside 1..{max_position}.")
        self.position = position
        self.max_position = max_position


class TooManyWinnersError(ValidationError):
    def __init__(self, count: int, max_winners: int) -> None:
        super().__init__(f"{count} winners requested, at most {max_winners} allowed.")
        self.count = count
        self.max_winners = max_winners


class InvalidDateRangeError(ValidationError):
    pass


class NegativeStatsError(ValidationError):
    pass


class InactiveUserError(ValidationError):
    pass


# --- state conflicts ---

class ContestNotOpenError(StateConflictError):
    pass


class ContestNotFinishedError(StateConflictError):
    pass


class PositionTakenError(StateConflictError):
    def __init__(self, position: int) -> None:
        super().__init__(f"Position {position} is already taken.")
        self.position = position


class AlreadyWinnerError(StateConflictError):
    pass


class DuplicateWeeklyContestError(StateConflictError):
    def __init__(self, week_number: int, year: int) -> None:
        super().__init__(f"A weekly contest already exists for week {week_number} of {year}.")
        self.week_number = week_number
        self.year = year


class DrawAlreadyCompletedError(StateConflictError):
    pass


class ContestCompletedError(StateConflictError):
    pass


class ContestHasParticipantsError(StateConflictError):
    pass


# --- lookups ---

class ContestNotFoundError(NotFoundError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class StandaloneWinnerNotFoundError(NotFoundError):
    pass


__all__ = [
    "BackofficeError",
    "ValidationError",
    "StateConflictError",
    "NotFoundError",
    "NotAParticipantError",
    "InvalidPositionError",
    "TooManyWinnersError",
    "InvalidDateRangeError",
    "NegativeStatsError",
    "InactiveUserError",
    "ContestNotOpenError",
    "ContestNotFinishedError",
    "PositionTakenError",
    "AlreadyWinnerError",
    "DuplicateWeeklyContestError",
    "DrawAlreadyCompletedError",
    "ContestCompletedError",
    "ContestHasParticipantsError",
    "ContestNotFoundError",
    "UserNotFoundError",
    "StandaloneWinnerNotFoundError",
]
