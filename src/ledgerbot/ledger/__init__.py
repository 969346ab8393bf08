"""Ledger API client and response contracts."""

from ledgerbot.ledger.client import Endpoints, LedgerClient

__all__ = ["Endpoints", "LedgerClient"]
