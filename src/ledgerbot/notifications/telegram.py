"""Telegram notification delivery.

Deposit events arrive keyed by ledger user id; they are routed to the chat
bound to that user's session, if any.
"""

import logging
from html import escape
from typing import Any, Optional, Union

from aiogram import Bot
from aiogram.exceptions import (
    TelegramAPIError,
    TelegramBadRequest,
    TelegramForbiddenError,
)

from ledgerbot.core.preferences import PreferencesStore
from ledgerbot.core.sessions import SessionStore
from ledgerbot.currencies import format_address, format_amount
from ledgerbot.errors import AuthError
from ledgerbot.ledger.client import LedgerClient
from ledgerbot.ledger.models import DepositEvent

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Sends messages to chats outside of an update handler."""

    def __init__(self, bot: Bot):
        self._bot = bot

    async def send_message(
        self,
        chat_id: int,
        message: str,
        parse_mode: Optional[str] = "HTML",
    ) -> bool:
        """Send a message to a chat.

        Args:
            chat_id: Destination chat
            message: Message text
            parse_mode: Optional parse mode (HTML, Markdown, etc.)

        Returns:
            True if message was sent successfully
        """
        try:
            await self._bot.send_message(chat_id=chat_id, text=message, parse_mode=parse_mode)
            return True
        except TelegramForbiddenError:
            logger.warning(f"Chat {chat_id} has blocked the bot")
            return False
        except TelegramBadRequest as e:
            logger.error(f"Bad request sending to {chat_id}: {e}")
            return False
        except TelegramAPIError as e:
            logger.error(f"Failed to send notification to {chat_id}: {e}")
            return False


def format_deposit(event: DepositEvent) -> str:
    currency = event.currency or ""
    lines = [
        "💰 <b>New Deposit Received</b>",
        "",
        f"Amount: {escape(format_amount(event.amount, currency))} {escape(currency)}",
        f"Status: {escape(event.status or 'pending')}",
    ]
    if event.network:
        lines.append(f"Network: {escape(event.network)}")
    if event.transaction_id:
        lines.append(f"Transaction: <code>{escape(format_address(event.transaction_id))}</code>")
    lines += ["", "<i>Deposit will be credited after network confirmations.</i>"]
    return "\n".join(lines)


class DepositNotifier:
    """Forwards deposit events to the owning user's chat."""

    def __init__(
        self,
        notifier: TelegramNotifier,
        sessions: SessionStore,
        preferences: PreferencesStore,
        ledger: LedgerClient,
    ):
        self._notifier = notifier
        self._sessions = sessions
        self._preferences = preferences
        self._ledger = ledger

    async def handle_deposit(self, event: Union[DepositEvent, dict[str, Any]]) -> bool:
        """Deliver one deposit event. Returns True if a message was sent."""
        if not isinstance(event, DepositEvent):
            event = DepositEvent.model_validate(event)
        logger.info(
            f"Deposit notification received: user={event.user_id} "
            f"amount={event.amount} {event.currency}"
        )
        if not event.user_id:
            return False

        session = self._sessions.find_by_ledger_user(event.user_id)
        chat_id = self._sessions.get_chat_id(session.user_id) if session else None
        if chat_id is None:
            logger.warning(f"No active session found for deposit notification: user={event.user_id}")
            return False

        if not self._preferences.get(session.user_id).notifications_enabled:
            logger.debug(f"Notifications disabled for user {session.user_id}")
            return False

        return await self._notifier.send_message(chat_id, format_deposit(event))

    async def authorize_channel(self, socket_id: str, channel_name: str) -> dict:
        """Sign a private channel subscription with the latest active token.

        Raises:
            AuthError: If no session currently holds a token
        """
        token = self._sessions.get_latest_token()
        if token is None:
            raise AuthError("No authenticated session available for notifications")
        return await self._ledger.authorize_channel(token, socket_id, channel_name)
