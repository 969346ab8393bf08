"""Reply helpers used at the handler boundary."""

import logging

from aiogram.types import Message

from ledgerbot.container import BotServices
from ledgerbot.core.tokens import AuthCheck, AuthStatus
from ledgerbot.errors import AuthError, BotError, user_message

logger = logging.getLogger(__name__)


async def reply_error(
    message: Message, services: BotServices, user_id: int, exc: BotError
) -> None:
    """Render a ledger failure; a rejected credential ends the session token."""
    if isinstance(exc, AuthError):
        logger.warning(f"Credential rejected by ledger: user={user_id}")
        services.tokens.invalidate(user_id)
        await message.answer(AuthCheck(AuthStatus.EXPIRED).message)
        return
    await message.answer(user_message(exc))
