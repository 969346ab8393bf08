"""Bot handlers module."""

from aiogram import Router

from ledgerbot.bot.handlers import auth, fallback, settings, start, transfer, wallet
from ledgerbot.bot.middlewares import ActionLimitMiddleware, AuthMiddleware


def setup_routers() -> Router:
    """Create and configure all routers."""
    main_router = Router()

    # Inner middlewares run in registration order: action limit, then auth.
    for observer in (main_router.message, main_router.callback_query):
        observer.middleware(ActionLimitMiddleware())
        observer.middleware(AuthMiddleware())

    main_router.include_router(start.router)
    main_router.include_router(auth.router)
    main_router.include_router(wallet.router)
    main_router.include_router(transfer.router)
    main_router.include_router(settings.router)
    # Must stay last: claims every unhandled command.
    main_router.include_router(fallback.router)

    return main_router
