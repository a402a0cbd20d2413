"""Winner notifications delivered by email and, when a bot is bound, by Telegram."""
from __future__ import annotations

import asyncio
import logging
from email.message import EmailMessage
from typing import ClassVar, Optional

import aiosmtplib
from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError

from backoffice.config import Settings
from backoffice.db.schemas.user import UserRead
from backoffice.i18n import Localizer, localizer_for

logger = logging.getLogger(__name__)


class WinnerNotifier:
	"""
	Singleton that tells winners about their prize.

	``notify_winner`` only schedules delivery and returns at once; a failed
	channel is logged and counted in ``failed_deliveries`` and never reaches
	the caller.
	"""

	_instance: ClassVar[Optional["WinnerNotifier"]] = None

	def __new__(cls, *args, **kwargs) -> "WinnerNotifier":
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self, settings: Optional[Settings] = None) -> None:
		if getattr(self, "_initialized", False):
			return
		self._settings = settings or Settings()
		self._bot: Optional[Bot] = None
		self._pending: set[asyncio.Task] = set()
		self.failed_deliveries = 0
		self.sent_deliveries = 0
		self._initialized = True

	def bind_bot(self, bot: Bot) -> None:
		"""Provide the active bot instance so Telegram messages can be delivered."""
		self._bot = bot
		logger.info("Winner notifier bound to bot %s", getattr(bot, "id", None))

	def notify_winner(self, user: UserRead, contest_title: str, prize: str) -> asyncio.Task:
		task = asyncio.get_running_loop().create_task(self._deliver(user, contest_title, prize))
		self._pending.add(task)
		task.add_done_callback(self._pending.discard)
		return task

	async def drain(self) -> None:
		"""Wait for every scheduled delivery to finish."""
		while self._pending:
			await asyncio.gather(*list(self._pending), return_exceptions=True)

	@property
	def pending(self) -> int:
		return len(self._pending)

	async def _deliver(self, user: UserRead, contest_title: str, prize: str) -> None:
		try:
			await self._deliver_channels(user, contest_title, prize)
		except Exception:
			self.failed_deliveries += 1
			logger.exception("Notification of winner %s about %s crashed", user.id, contest_title)

	async def _deliver_channels(self, user: UserRead, contest_title: str, prize: str) -> None:
		lz = localizer_for(user.preferred_language)
		subject = lz.get("notifications.winner.subject", contest_title=contest_title)
		text = self._render(lz, user, contest_title, prize)

		if self._smtp_enabled() and user.email:
			try:
				await self._send_email(user.email, subject, text)
				self.sent_deliveries += 1
			except (aiosmtplib.errors.SMTPException, OSError, TimeoutError):
				self.failed_deliveries += 1
				logger.exception("Failed to email winner %s about %s", user.id, contest_title)
			except Exception:
				self.failed_deliveries += 1
				logger.exception("Email delivery to user %s crashed", user.id)

		if self._bot is not None and isinstance(user.tg_id, int):
			try:
				await self._bot.send_message(chat_id=user.tg_id, text=f"{subject}\n\n{text}")
				self.sent_deliveries += 1
			except (TelegramForbiddenError, TelegramBadRequest):
				self.failed_deliveries += 1
				logger.warning("Failed to deliver winner message to user %s", user.id, exc_info=True)
			except Exception:
				self.failed_deliveries += 1
				logger.exception("Telegram delivery to user %s crashed", user.id)

	@staticmethod
	def _render(lz: Localizer, user: UserRead, contest_title: str, prize: str) -> str:
		name = user.first_name or user.full_name or user.email
		return "\n".join(
			[
				lz.get("notifications.winner.greeting", name=name),
				lz.get("notifications.winner.body", contest_title=contest_title),
				lz.get("notifications.winner.prize", prize=prize),
				lz.get("notifications.winner.footer"),
			]
		)

	def _smtp_enabled(self) -> bool:
		return bool(self._settings.smtp_host)

	async def _send_email(self, to: str, subject: str, text: str) -> None:
		message = EmailMessage()
		message["From"] = self._settings.smtp_sender
		message["To"] = to
		message["Subject"] = subject
		message.set_content(text)

		await aiosmtplib.send(
			message,
			hostname=self._settings.smtp_host,
			port=self._settings.smtp_port,
			username=self._settings.smtp_username,
			password=self._settings.smtp_password,
			start_tls=self._settings.smtp_use_tls,
			timeout=30,
		)
