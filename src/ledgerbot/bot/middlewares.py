"""Request gating: rate limits first, then the credential check.

``RateLimitMiddleware`` runs as an outer middleware on every message and
callback query and applies the default action class. The inner middlewares
read handler flags:

    @router.message(Command("login"), flags={"rate_limit": "login"})
    @router.message(Command("balance"), flags={"auth": True})

and inject ``token`` into handlers that require a session.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from aiogram import BaseMiddleware
from aiogram.dispatcher.flags import get_flag
from aiogram.types import CallbackQuery, Message, TelegramObject, User

from ledgerbot.container import BotServices
from ledgerbot.core.rate_limit import ActionClass, Denied

logger = logging.getLogger(__name__)

Handler = Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]]


def extract_command(event: TelegramObject) -> Optional[str]:
    """Leading ``/command`` of a message, without the bot mention."""
    if not isinstance(event, Message) or not event.text or not event.text.startswith("/"):
        return None
    return event.text.split(maxsplit=1)[0].split("@", 1)[0].lower()


async def _notify(event: TelegramObject, text: str) -> None:
    if isinstance(event, CallbackQuery):
        await event.answer(text[:200], show_alert=True)
        return
    if isinstance(event, Message):
        await event.answer(text)


class RateLimitMiddleware(BaseMiddleware):
    """Default-class window with the warning and ban ladder."""

    async def __call__(self, handler: Handler, event: TelegramObject, data: dict[str, Any]) -> Any:
        user: Optional[User] = data.get("event_from_user")
        services: BotServices = data["services"]
        if user is None:
            return await handler(event, data)

        decision = services.rate_limiter.check(
            user.id, ActionClass.DEFAULT, command=extract_command(event)
        )
        if isinstance(decision, Denied):
            logger.debug(f"Request denied: user={user.id} reason={decision.reason.value}")
            await _notify(event, decision.message)
            return None
        return await handler(event, data)


class ActionLimitMiddleware(BaseMiddleware):
    """Per-action window for handlers flagged with ``rate_limit``."""

    async def __call__(self, handler: Handler, event: TelegramObject, data: dict[str, Any]) -> Any:
        action = get_flag(data, "rate_limit")
        user: Optional[User] = data.get("event_from_user")
        if action is None or user is None:
            return await handler(event, data)

        services: BotServices = data["services"]
        decision = services.rate_limiter.check(user.id, ActionClass(action))
        if isinstance(decision, Denied):
            await _notify(event, decision.message)
            return None
        return await handler(event, data)


class AuthMiddleware(BaseMiddleware):
    """Ensures a fresh token for handlers flagged with ``auth``."""

    async def __call__(self, handler: Handler, event: TelegramObject, data: dict[str, Any]) -> Any:
        user: Optional[User] = data.get("event_from_user")
        if not get_flag(data, "auth") or user is None:
            return await handler(event, data)

        services: BotServices = data["services"]
        check = await services.tokens.ensure_fresh(user.id)
        if not check.ok:
            await _notify(event, check.message)
            return None

        services.sessions.update(user.id)
        data["token"] = check.token
        return await handler(event, data)
