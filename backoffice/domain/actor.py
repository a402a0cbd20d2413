# domain/actor.py
import uuid
from dataclasses import dataclass
from typing import ClassVar, Optional, Self


@dataclass(frozen=True, slots=True)
class Admin:
	"""An operator acting through the admin panel."""
	user_id: uuid.UUID


class System:
	"""Unattended actor (scheduler, maintenance scripts)."""

	_instance: ClassVar[Optional["System"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __repr__(self) -> str:
		return "SYSTEM"


SYSTEM = System()

Actor = Admin | System


def actor_user_id(actor: Actor | None) -> Optional[uuid.UUID]:
	"""Return the user id behind an actor, ``None`` for unattended operations."""
	if isinstance(actor, Admin):
		return actor.user_id
	return None


def actor_from_user_id(user_id: Optional[uuid.UUID]) -> Actor:
	return Admin(user_id) if user_id is not None else SYSTEM


__all__ = ["Admin", "System", "SYSTEM", "Actor", "actor_user_id", "actor_from_user_id"]
