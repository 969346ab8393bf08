"""Services built on the ledger client and the core state tables."""

from ledgerbot.services.auth import AuthService
from ledgerbot.services.transfer import TransferService
from ledgerbot.services.wallet import WalletService

__all__ = ["AuthService", "TransferService", "WalletService"]
