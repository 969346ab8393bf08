"""Per-user request rate limiting with escalating temporary bans.

Each (user, action class) pair gets a fixed counting window. Exceeding the
default class window earns a warning; reaching ``max_warnings`` converts the
user into a temporary ban. Every outcome is returned as a value, nothing here
raises.
"""

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from ledgerbot.core.ttl import ExpiringIndex

logger = logging.getLogger(__name__)


class ActionClass(str, Enum):
    """Independently limited request classes."""

    LOGIN = "login"
    OTP = "otp"
    KYC = "kyc"
    DEFAULT = "default"


@dataclass(frozen=True)
class WindowLimit:
    window_seconds: float
    max_requests: int


# Fixed per-action limits; the default class comes from settings.
ACTION_LIMITS: dict[ActionClass, WindowLimit] = {
    ActionClass.LOGIN: WindowLimit(window_seconds=5 * 60, max_requests=5),
    ActionClass.OTP: WindowLimit(window_seconds=60, max_requests=3),
    ActionClass.KYC: WindowLimit(window_seconds=60, max_requests=10),
}

WHITELIST_COMMANDS = frozenset({"/start", "/help", "/support"})


@dataclass
class RateLimitRecord:
    """Request counter for one user and action class."""

    count: int
    window_start: float
    warnings: int = 0


@dataclass
class Ban:
    expires_at: float


class DenialReason(str, Enum):
    BANNED = "banned"
    BAN_ISSUED = "ban_issued"
    WINDOW_EXCEEDED = "window_exceeded"


@dataclass(frozen=True)
class Allowed:
    allowed = True


@dataclass(frozen=True)
class Denied:
    """A rejected request and the notice to show the user."""

    reason: DenialReason
    retry_after_seconds: int
    message: str
    warnings: int = 0

    allowed = False


ALLOWED = Allowed()

Decision = Union[Allowed, Denied]


class RateLimiter:
    """Fixed-window request counter with a ban ladder on the default class."""

    def __init__(
        self,
        max_requests: int = 30,
        window_seconds: float = 60.0,
        max_warnings: int = 3,
        ban_seconds: float = 30 * 60,
        action_limits: Optional[dict[ActionClass, WindowLimit]] = None,
        whitelist: frozenset[str] = WHITELIST_COMMANDS,
        clock: Callable[[], float] = time.time,
    ):
        self.default_limit = WindowLimit(window_seconds, max_requests)
        self.max_warnings = max_warnings
        self.ban_seconds = ban_seconds
        self.action_limits = dict(ACTION_LIMITS if action_limits is None else action_limits)
        self.whitelist = whitelist
        self._clock = clock

        self._records: dict[tuple[int, ActionClass], RateLimitRecord] = {}
        self._bans: dict[int, Ban] = {}
        self._record_expiry: ExpiringIndex[tuple[int, ActionClass]] = ExpiringIndex()
        self._ban_expiry: ExpiringIndex[int] = ExpiringIndex()

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], float] = time.time) -> "RateLimiter":
        return cls(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            max_warnings=settings.rate_limit_max_warnings,
            ban_seconds=settings.rate_limit_ban_minutes * 60,
            clock=clock,
        )

    def limit_for(self, action: ActionClass) -> WindowLimit:
        if action is ActionClass.DEFAULT:
            return self.default_limit
        return self.action_limits.get(action, self.default_limit)

    # ======================
    # Gating
    # ======================

    def check(
        self,
        user_id: int,
        action: Union[ActionClass, str] = ActionClass.DEFAULT,
        command: Optional[str] = None,
    ) -> Decision:
        """Decide whether a request may proceed; an allowed request is counted.

        Args:
            user_id: Chat user identity
            action: Action class whose window applies
            command: Leading command of the message, for the whitelist

        Returns:
            ALLOWED or a Denied carrying the notice for the user
        """
        action = ActionClass(action)
        now = self._clock()

        ban = self._bans.get(user_id)
        if ban is not None and now >= ban.expires_at:
            self._lift_ban(user_id)
            ban = None

        if ban is not None:
            remaining = ban.expires_at - now
            minutes = math.ceil(remaining / 60)
            return Denied(
                reason=DenialReason.BANNED,
                retry_after_seconds=math.ceil(remaining),
                message=(
                    "⛔ You are temporarily banned due to rate limit abuse.\n"
                    f"Please try again in {minutes} minutes."
                ),
            )

        if command and command in self.whitelist:
            return ALLOWED

        limit = self.limit_for(action)
        record = self._current_window(user_id, action, now)

        if record.count >= limit.max_requests:
            wait = math.ceil(limit.window_seconds - (now - record.window_start))
            wait = int(min(max(wait, 1), limit.window_seconds))

            if action is not ActionClass.DEFAULT:
                logger.warning(
                    f"Rate limit exceeded: user={user_id} action={action.value} wait={wait}s"
                )
                return Denied(
                    reason=DenialReason.WINDOW_EXCEEDED,
                    retry_after_seconds=wait,
                    message=f"Rate limit exceeded. Please try again in {wait} seconds.",
                )

            record.warnings += 1
            if record.warnings >= self.max_warnings:
                return self._issue_ban(user_id, record.warnings, now)

            return Denied(
                reason=DenialReason.WINDOW_EXCEEDED,
                retry_after_seconds=wait,
                warnings=record.warnings,
                message=(
                    f"⚠️ Rate limit exceeded. Please wait {wait} seconds before trying again.\n"
                    f"Warning {record.warnings}/{self.max_warnings}: "
                    "Continued violations will result in a temporary ban."
                ),
            )

        record.count += 1
        return ALLOWED

    def record(self, user_id: int, action: Union[ActionClass, str] = ActionClass.DEFAULT) -> None:
        """Count a request without gating it."""
        action = ActionClass(action)
        self._current_window(user_id, action, self._clock()).count += 1

    def _current_window(self, user_id: int, action: ActionClass, now: float) -> RateLimitRecord:
        key = (user_id, action)
        limit = self.limit_for(action)
        record = self._records.get(key)

        if record is None:
            record = RateLimitRecord(count=0, window_start=now)
            self._records[key] = record
            self._record_expiry.schedule(key, now + limit.window_seconds)
        elif now - record.window_start > limit.window_seconds:
            record.count = 0
            record.window_start = now
            self._record_expiry.schedule(key, now + limit.window_seconds)

        return record

    def _issue_ban(self, user_id: int, warnings: int, now: float) -> Denied:
        expires_at = now + self.ban_seconds
        self._bans[user_id] = Ban(expires_at=expires_at)
        self._ban_expiry.schedule(user_id, expires_at)
        self._drop_record((user_id, ActionClass.DEFAULT))

        minutes = int(self.ban_seconds // 60)
        logger.warning(
            f"User {user_id} temporarily banned for rate limit abuse "
            f"(warnings={warnings}, minutes={minutes})"
        )
        return Denied(
            reason=DenialReason.BAN_ISSUED,
            retry_after_seconds=math.ceil(self.ban_seconds),
            warnings=warnings,
            message=(
                f"⛔ You have been temporarily banned for {minutes} minutes "
                "due to repeated rate limit violations."
            ),
        )

    def _lift_ban(self, user_id: int) -> None:
        self._bans.pop(user_id, None)
        self._ban_expiry.discard(user_id)
        # Warnings start over once a ban has been served.
        self._drop_record((user_id, ActionClass.DEFAULT))
        logger.info(f"User ban expired: {user_id}")

    def _drop_record(self, key: tuple[int, ActionClass]) -> None:
        self._records.pop(key, None)
        self._record_expiry.discard(key)

    # ======================
    # Inspection and cleanup
    # ======================

    def get_record(
        self, user_id: int, action: Union[ActionClass, str] = ActionClass.DEFAULT
    ) -> Optional[RateLimitRecord]:
        return self._records.get((user_id, ActionClass(action)))

    def get_ban(self, user_id: int) -> Optional[Ban]:
        return self._bans.get(user_id)

    def is_banned(self, user_id: int) -> bool:
        ban = self._bans.get(user_id)
        return ban is not None and self._clock() < ban.expires_at

    def sweep(self) -> int:
        """Purge elapsed windows and expired bans. Returns entries removed."""
        now = self._clock()
        removed = 0

        for key in self._record_expiry.pop_expired(now):
            if self._records.pop(key, None) is not None:
                removed += 1

        for user_id in self._ban_expiry.pop_expired(now):
            if self._bans.pop(user_id, None) is not None:
                self._drop_record((user_id, ActionClass.DEFAULT))
                logger.info(f"User ban expired: {user_id}")
                removed += 1

        return removed

    def reset(self) -> None:
        self._records.clear()
        self._bans.clear()
        self._record_expiry.clear()
        self._ban_expiry.clear()
