"""Per-user display and notification preferences."""

import logging
from dataclasses import dataclass, replace
from enum import Enum

from ledgerbot.currencies import DEFAULT_CURRENCY, get_currency
from ledgerbot.errors import ValidationError

logger = logging.getLogger(__name__)


class DisplayFormat(str, Enum):
    DETAILED = "detailed"
    COMPACT = "compact"


@dataclass(frozen=True)
class UserPreferences:
    default_currency: str = DEFAULT_CURRENCY
    notifications_enabled: bool = True
    display_format: DisplayFormat = DisplayFormat.DETAILED


class PreferencesStore:
    """In-memory preferences; users without an entry get the defaults."""

    def __init__(self) -> None:
        self._preferences: dict[int, UserPreferences] = {}

    def get(self, user_id: int) -> UserPreferences:
        return self._preferences.get(user_id, UserPreferences())

    def _update(self, user_id: int, **changes) -> UserPreferences:
        updated = replace(self.get(user_id), **changes)
        self._preferences[user_id] = updated
        logger.debug(f"User preferences updated: user={user_id} {changes}")
        return updated

    def set_default_currency(self, user_id: int, code: str) -> UserPreferences:
        currency = get_currency(code)
        if currency is None:
            raise ValidationError(f"Unsupported currency: {code}")
        return self._update(user_id, default_currency=currency.code)

    def set_display_format(self, user_id: int, display_format: str) -> UserPreferences:
        try:
            value = DisplayFormat(display_format)
        except ValueError:
            raise ValidationError(f"Unknown display format: {display_format}")
        return self._update(user_id, display_format=value)

    def toggle_notifications(self, user_id: int) -> bool:
        prefs = self._update(
            user_id, notifications_enabled=not self.get(user_id).notifications_enabled
        )
        return prefs.notifications_enabled

    def clear(self, user_id: int) -> None:
        self._preferences.pop(user_id, None)
