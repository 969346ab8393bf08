"""Telegram bot for authenticating with a ledger API and moving funds."""

__version__ = "0.1.0"
