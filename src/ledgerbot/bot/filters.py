"""Filters that route free text to the active conversation."""

from aiogram.filters import BaseFilter
from aiogram.types import Message

from ledgerbot.container import BotServices
from ledgerbot.core.login import LoginStep


def _is_command(message: Message) -> bool:
    return bool(message.text) and message.text.startswith("/")


class AwaitingLogin(BaseFilter):
    """Plain text from a user whose login attempt is at ``step``."""

    def __init__(self, step: LoginStep):
        self.step = step

    async def __call__(self, message: Message, services: BotServices) -> bool:
        if not message.from_user or not message.text or _is_command(message):
            return False
        return services.logins.is_awaiting(message.from_user.id, self.step)


class InTransfer(BaseFilter):
    """Plain text from a user with an active transfer conversation."""

    async def __call__(self, message: Message, services: BotServices) -> bool:
        if not message.from_user or not message.text or _is_command(message):
            return False
        return services.transfers.has_active(message.from_user.id)
