"""Shared components, built once at startup and passed to every handler."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from aiogram import Bot

from ledgerbot.config import Settings
from ledgerbot.core.login import LoginFlow
from ledgerbot.core.preferences import PreferencesStore
from ledgerbot.core.rate_limit import RateLimiter
from ledgerbot.core.sessions import SessionStore
from ledgerbot.core.tokens import TokenLifecycleManager
from ledgerbot.core.transfer import TransferStateMachine
from ledgerbot.ledger.client import LedgerClient
from ledgerbot.notifications.telegram import DepositNotifier, TelegramNotifier
from ledgerbot.services import AuthService, TransferService, WalletService

logger = logging.getLogger(__name__)


@dataclass
class BotServices:
    settings: Settings
    ledger: LedgerClient
    sessions: SessionStore
    rate_limiter: RateLimiter
    tokens: TokenLifecycleManager
    transfers: TransferStateMachine
    logins: LoginFlow
    preferences: PreferencesStore
    auth: AuthService
    wallets: WalletService
    history: TransferService
    deposits: Optional[DepositNotifier] = None

    def attach_bot(self, bot: Bot) -> DepositNotifier:
        """Enable outbound notifications through ``bot``."""
        self.deposits = DepositNotifier(
            TelegramNotifier(bot), self.sessions, self.preferences, self.ledger
        )
        return self.deposits

    def end_conversations(self, user_id: int) -> None:
        """Drop any in-progress login or transfer of ``user_id``."""
        self.logins.cancel(user_id)
        self.transfers.discard(user_id)

    def sweep(self) -> None:
        """Purge expired rate-limit entries and idle sessions."""
        removed = self.rate_limiter.sweep()
        evicted = self.sessions.sweep()
        for user_id in evicted:
            self.end_conversations(user_id)
        if removed or evicted:
            logger.info(f"Sweep: rate_limit_entries={removed} sessions={len(evicted)}")

    async def close(self) -> None:
        await self.ledger.close()


def build_services(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    clock: Callable[[], float] = time.time,
) -> BotServices:
    """Wire the component graph from settings."""
    ledger = LedgerClient(
        settings.ledger_api_url,
        timeout=settings.ledger_api_timeout,
        transport=transport,
    )
    sessions = SessionStore(idle_seconds=settings.session_idle_hours * 3600, clock=clock)
    logins = LoginFlow()
    return BotServices(
        settings=settings,
        ledger=ledger,
        sessions=sessions,
        rate_limiter=RateLimiter.from_settings(settings, clock=clock),
        tokens=TokenLifecycleManager(
            ledger,
            sessions,
            threshold_seconds=settings.token_refresh_threshold_seconds,
            clock=clock,
        ),
        transfers=TransferStateMachine(ledger),
        logins=logins,
        preferences=PreferencesStore(),
        auth=AuthService(ledger, sessions, logins),
        wallets=WalletService(ledger),
        history=TransferService(ledger),
    )
