"""Bot initialization and runner."""

import asyncio
import contextlib
import logging
from typing import Optional

from aiogram import Bot, Dispatcher
from aiogram.types import ErrorEvent

from ledgerbot.bot.handlers import setup_routers
from ledgerbot.bot.middlewares import RateLimitMiddleware
from ledgerbot.config import Settings, get_settings
from ledgerbot.container import BotServices, build_services
from ledgerbot.errors import GENERIC_FAILURE

logger = logging.getLogger(__name__)


async def on_error(event: ErrorEvent) -> bool:
    """Log unexpected failures and let the user carry on."""
    logger.error(f"Unhandled error: {event.exception!r}", exc_info=event.exception)

    update = event.update
    message = update.message
    if message is None and update.callback_query is not None:
        message = update.callback_query.message
    if message is not None:
        with contextlib.suppress(Exception):
            await message.answer(GENERIC_FAILURE)
    return True


def create_dispatcher(services: BotServices) -> Dispatcher:
    """Dispatcher with gating middlewares, routers and injected services."""
    dp = Dispatcher(services=services)

    # Outer middlewares see every event, before filters and handlers.
    dp.message.outer_middleware(RateLimitMiddleware())
    dp.callback_query.outer_middleware(RateLimitMiddleware())

    dp.include_router(setup_routers())
    dp.errors.register(on_error)
    return dp


def create_bot(
    settings: Optional[Settings] = None,
    services: Optional[BotServices] = None,
) -> tuple[Bot, Dispatcher, BotServices]:
    """Create bot, dispatcher and the shared services."""
    settings = settings or get_settings()

    if not settings.telegram_bot_token:
        raise ValueError("TELEGRAM_BOT_TOKEN is not set")

    # No default parse_mode - each handler decides
    bot = Bot(token=settings.telegram_bot_token)

    services = services or build_services(settings)
    services.attach_bot(bot)
    return bot, create_dispatcher(services), services


async def run_sweeper(services: BotServices, interval: float) -> None:
    """Periodically purge expired rate-limit state and idle sessions."""
    while True:
        await asyncio.sleep(interval)
        try:
            services.sweep()
        except Exception as e:
            logger.error(f"Sweep failed: {e}", exc_info=e)


async def run_bot() -> None:
    """Run the bot in polling mode."""
    settings = get_settings()

    # Configure logging - reduce noise from libraries
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiogram").setLevel(logging.INFO)

    logger.info("Starting ledger bot...")
    logger.info(f"Configuration: {settings.get_safe_dict()}")

    bot, dp, services = create_bot(settings)
    sweeper = asyncio.create_task(run_sweeper(services, settings.sweep_interval_seconds))

    try:
        # Delete webhook if any and start polling
        await bot.delete_webhook(drop_pending_updates=True)
        logger.info("Starting polling...")
        await dp.start_polling(bot)
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        await services.close()
        await bot.session.close()


def main() -> None:
    """Entry point for the bot."""
    asyncio.run(run_bot())


if __name__ == "__main__":
    main()
