# run.py
import asyncio
import logging

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from uvicorn import Config, Server

from backoffice.api.app import create_app
from backoffice.config import Settings
from backoffice.db.database import DataBase
from backoffice.services.notifier import WinnerNotifier
from backoffice.services.scheduler import DrawScheduler

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main() -> None:
	settings = Settings()
	db = DataBase()
	await db.create_all()

	notifier = WinnerNotifier()
	bot = None
	if settings.bot_token:
		bot = Bot(settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
		notifier.bind_bot(bot)
	else:
		logger.info("BOT_TOKEN is not set, winners are notified by email only")

	scheduler = DrawScheduler()
	scheduler.start()

	server = Server(Config(create_app(), host=settings.api_host, port=settings.api_port, log_config=None))
	try:
		await server.serve()
	finally:
		await scheduler.stop()
		await notifier.drain()
		if bot is not None:
			await bot.session.close()
		await db.dispose()


def cli() -> None:
	asyncio.run(main())


if __name__ == "__main__":
	cli()
