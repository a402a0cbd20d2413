# services/clock.py
from datetime import datetime
from typing import Protocol

from backoffice.db.models._base import utcnow


class Clock(Protocol):
	def now(self) -> datetime: ...


class SystemClock:
	"""Wall clock in naive UTC."""

	def now(self) -> datetime:
		return utcnow()
