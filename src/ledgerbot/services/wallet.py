"""Wallet and balance lookups."""

import logging
from typing import Optional

from ledgerbot.errors import ValidationError
from ledgerbot.ledger.client import LedgerClient
from ledgerbot.ledger.models import Wallet, WalletBalance

logger = logging.getLogger(__name__)


class WalletService:
    def __init__(self, ledger: LedgerClient):
        self._ledger = ledger

    async def get_balances(self, token: str) -> list[WalletBalance]:
        """Balances per wallet, default wallet first."""
        balances = await self._ledger.get_balances(token)
        return sorted(balances, key=lambda b: not b.is_default)

    async def get_wallets(self, token: str) -> list[Wallet]:
        return await self._ledger.get_wallets(token)

    async def get_wallet(self, token: str, wallet_id: str) -> Optional[Wallet]:
        for wallet in await self._ledger.get_wallets(token):
            if wallet.id == wallet_id:
                return wallet
        return None

    async def get_default_wallet(self, token: str) -> Wallet:
        return await self._ledger.get_default_wallet(token)

    async def set_default_wallet(self, token: str, wallet_id: str) -> Wallet:
        """Make ``wallet_id`` the default; it must belong to the user."""
        if await self.get_wallet(token, wallet_id) is None:
            raise ValidationError("Wallet not found.")
        wallet = await self._ledger.set_default_wallet(token, wallet_id)
        logger.info(f"Default wallet set: wallet={wallet_id} network={wallet.network}")
        return wallet
