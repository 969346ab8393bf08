"""FastAPI application factory."""

from fastapi import FastAPI, Request

from ledgerbot import __version__
from ledgerbot.container import BotServices


def get_services(request: Request) -> BotServices:
    """Dependency returning the services the app was created with."""
    return request.app.state.services


def create_app(services: BotServices) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = services.settings

    app = FastAPI(
        title="Ledger Bot Notifications",
        description="Deposit notifications and channel authorization",
        version=__version__,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
    )
    app.state.services = services

    from ledgerbot.api.routes import health, notifications

    app.include_router(health.router, tags=["Health"])
    app.include_router(notifications.router, prefix="/api/v1", tags=["Notifications"])

    return app
