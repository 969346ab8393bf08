"""Outbound chat notifications."""

from ledgerbot.notifications.telegram import DepositNotifier, TelegramNotifier

__all__ = ["DepositNotifier", "TelegramNotifier"]
