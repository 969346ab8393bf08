"""Main entry point - runs the bot and the notifications API."""

import asyncio
import logging
import signal

import uvicorn
from dotenv import load_dotenv

from ledgerbot.api.app import create_app
from ledgerbot.bot.bot import create_bot, run_sweeper
from ledgerbot.config import get_settings

logger = logging.getLogger(__name__)


class Application:
    """Runs the bot polling loop, the API server and the sweeper together."""

    def __init__(self):
        self.settings = get_settings()
        self.bot = None
        self.dp = None
        self.services = None
        self._shutdown_event = asyncio.Event()

    async def start(self):
        """Start all services."""
        logging.basicConfig(
            level=self.settings.log_level.upper(),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        logging.getLogger("httpx").setLevel(logging.WARNING)

        logger.info("Starting ledger bot...")
        logger.info(f"Configuration: {self.settings.get_safe_dict()}")

        self.bot, self.dp, self.services = create_bot(self.settings)

        tasks = [
            asyncio.create_task(self._run_bot()),
            asyncio.create_task(run_sweeper(self.services, self.settings.sweep_interval_seconds)),
        ]
        if self.settings.api_enabled:
            tasks.append(asyncio.create_task(self._run_api()))
        else:
            logger.info("Notifications API disabled")

        await self._shutdown_event.wait()

        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        await self._cleanup()

    async def _run_bot(self):
        """Run the Telegram bot."""
        try:
            await self.bot.delete_webhook(drop_pending_updates=True)
            logger.info("Starting bot polling...")
            await self.dp.start_polling(self.bot, handle_signals=False)
        except asyncio.CancelledError:
            logger.info("Bot polling cancelled")
        except Exception as e:
            logger.error(f"Bot error: {e}")
            self.shutdown()
            raise

    async def _run_api(self):
        """Run the FastAPI server."""
        try:
            config = uvicorn.Config(
                create_app(self.services),
                host=self.settings.api_host,
                port=self.settings.api_port,
                log_level=self.settings.log_level.lower(),
            )
            server = uvicorn.Server(config)
            logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
            await server.serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")
        except Exception as e:
            logger.error(f"API error: {e}")
            raise

    async def _cleanup(self):
        logger.info("Cleaning up...")
        if self.services:
            await self.services.close()
        if self.bot:
            await self.bot.session.close()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    load_dotenv()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    app = Application()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
