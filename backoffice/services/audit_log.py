# services/audit_log.py
from __future__ import annotations

import inspect
import logging
import uuid
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from functools import wraps
from pathlib import Path
from typing import Any, ClassVar, Iterable, Mapping, MutableMapping, Optional, Sequence

from backoffice.db.database import DataBase
from backoffice.db.schemas.audit_log import AuditLogCreate, AuditLogRead
from backoffice.db.schemas.user import UserRead
from backoffice.domain.actor import Admin, System

ActorLike = Admin | System | UserRead | uuid.UUID


class AuditLogService:
	"""
	Stores every meaningful back-office action in the ``audit_log`` table.

	Payloads are normalised into JSON-friendly dictionaries, enriched with
	call-site metadata and handed to :class:`backoffice.db.database.DataBase`.
	The database is resolved on every write so a swapped ``DataBase`` singleton
	(tests, reconfiguration) is picked up.
	"""

	_instance: ClassVar[Optional["AuditLogService"]] = None

	def __new__(cls) -> "AuditLogService":
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return

		self._logger = logging.getLogger("backoffice.audit")
		self._module_name = Path(__file__).name
		self.enabled = True
		self._initialized = True

	@property
	def _database(self) -> DataBase:
		return DataBase()

	async def log(
		self,
		*,
		action: str,
		actor_id: uuid.UUID | None = None,
		payload: Any | None = None,
		include_context: bool = True,
	) -> Optional[AuditLogRead]:
		"""
		Persist a low-level audit entry.

		:param action: short machine-readable label (``contests.select_winner``…)
		:param actor_id: user behind the action, ``None`` for unattended work
		:param payload: arbitrary structure with details (will be serialised)
		:param include_context: whether to attach caller metadata automatically
		"""
		if not self.enabled:
			return None

		payload_map = self._prepare_payload(payload)
		if include_context:
			payload_map.setdefault("_meta", {}).update(self._call_context())

		entry = await self._database.create_audit_log(
			AuditLogCreate(action=action, actor_id=actor_id, payload=payload_map)
		)
		self._logger.info(
			"AUDIT action=%s actor=%s entry=%s",
			action,
			str(actor_id) if actor_id else "system",
			entry.id,
		)
		return entry

	async def log_actor_action(
		self,
		*,
		action: str,
		actor: ActorLike | None,
		payload: Any | None = None,
	) -> Optional[AuditLogRead]:
		"""Log an action with the actor kind recorded next to the payload."""
		payload_map: MutableMapping[str, Any] = {}
		if payload is not None:
			payload_map["data"] = self._serialize(payload)
		payload_map["actor"] = {"kind": "system" if isinstance(actor, System) or actor is None else "admin"}
		return await self.log(action=action, actor_id=self.actor_id(actor), payload=payload_map)

	async def list_entries(
		self,
		*,
		limit: int = 100,
		offset: int = 0,
		actor_id: uuid.UUID | None = None,
		action: str | None = None,
	) -> tuple[list[AuditLogRead], int]:
		"""Return recent audit entries."""
		return await self._database.list_audit_logs(
			limit=limit,
			offset=offset,
			actor_id=actor_id,
			action=action,
		)

	# -------
	# Actors
	# -------
	@staticmethod
	def actor_id(actor: ActorLike | None) -> uuid.UUID | None:
		if isinstance(actor, uuid.UUID):
			return actor
		if isinstance(actor, Admin):
			return actor.user_id
		if isinstance(actor, UserRead):
			return actor.id
		return None

	def _prepare_payload(self, payload: Any | None) -> dict[str, Any]:
		if payload is None:
			return {}
		serialized = self._serialize(payload)
		if isinstance(serialized, dict):
			return dict(serialized)
		return {"value": serialized}

	def serialize(self, value: Any) -> Any:
		"""Public helper for shared serialization logic."""
		return self._serialize(value)

	def _serialize(self, value: Any) -> Any:
		if isinstance(value, Enum):
			return value.value
		if value is None or isinstance(value, (str, int, float, bool)):
			return value
		if isinstance(value, uuid.UUID):
			return str(value)
		if isinstance(value, (datetime, date)):
			return value.isoformat()
		if isinstance(value, System):
			return "system"
		if is_dataclass(value) and not isinstance(value, type):
			return {k: self._serialize(v) for k, v in asdict(value).items()}
		if isinstance(value, Mapping):
			return {str(k): self._serialize(v) for k, v in value.items()}
		if isinstance(value, (set, frozenset)):
			return [self._serialize(v) for v in value]
		if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
			return [self._serialize(v) for v in value]
		if hasattr(value, "model_dump"):
			return self._serialize(value.model_dump())
		return repr(value)

	def _call_context(self) -> dict[str, Any]:
		stack = inspect.stack()
		for frame in stack[2:]:
			path = Path(frame.filename)
			if path.name != self._module_name:
				return {
					"module": path.stem,
					"location": f"{path.name}:{frame.lineno}",
					"function": frame.function,
				}
		return {}


audit_logger = AuditLogService()


def _resolve_actor(
	actor_fields: Iterable[str] | None,
	args: tuple[Any, ...],
	kwargs: dict[str, Any],
	signature: inspect.Signature,
) -> ActorLike | None:
	if not actor_fields:
		return None
	for field in actor_fields:
		candidate = kwargs.get(field)
		if candidate is not None:
			return candidate
	for idx, name in enumerate(signature.parameters):
		if name in actor_fields and idx < len(args) and args[idx] is not None:
			return args[idx]
	return None


def _serialized_args(args: tuple[Any, ...], skip: int) -> list[Any]:
	if skip >= len(args):
		return []
	return [audit_logger.serialize(arg) for arg in args[skip:]]


def _serialized_kwargs(kwargs: dict[str, Any]) -> dict[str, Any]:
	return {k: audit_logger.serialize(v) for k, v in kwargs.items()}


def _wrap_async_callable(
	fn,
	action: str,
	*,
	skip_first_arg: bool,
	actor_fields: Iterable[str] | None,
):
	if getattr(fn, "__audit_wrapped__", False):
		return fn

	signature = inspect.signature(fn)
	skip_count = 1 if skip_first_arg else 0

	@wraps(fn)
	async def wrapper(*args, **kwargs):
		actor = _resolve_actor(actor_fields, args, kwargs, signature)
		payload = {
			"args": _serialized_args(args, skip_count),
			"kwargs": _serialized_kwargs(kwargs),
		}
		try:
			result = await fn(*args, **kwargs)
		except Exception as exc:
			payload["error"] = repr(exc)
			await audit_logger.log_actor_action(action=f"{action}.error", actor=actor, payload=payload)
			raise
		payload["result"] = audit_logger.serialize(result)
		await audit_logger.log_actor_action(action=action, actor=actor, payload=payload)
		return result

	wrapper.__audit_wrapped__ = True  # type: ignore[attr-defined]
	return wrapper


def instrument_service_class(
	cls,
	*,
	prefix: str | None = None,
	exclude: Iterable[str] | None = None,
	actor_fields: Iterable[str] | None = ("actor",),
) -> None:
	"""Wrap public async methods of a service class to emit audit entries."""
	action_prefix = prefix or cls.__name__
	excluded = set(exclude or [])

	for name, attr in list(cls.__dict__.items()):
		if name.startswith("_") or name in excluded:
			continue
		if inspect.iscoroutinefunction(attr):
			setattr(
				cls,
				name,
				_wrap_async_callable(
					attr,
					f"{action_prefix}.{name}",
					skip_first_arg=True,
					actor_fields=actor_fields,
				),
			)


__all__ = [
	"AuditLogService",
	"audit_logger",
	"instrument_service_class",
]
