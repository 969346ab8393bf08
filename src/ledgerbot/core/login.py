"""Per-user ``/login`` conversation: email first, then the emailed code."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class LoginStep(str, Enum):
    AWAITING_EMAIL = "AWAITING_EMAIL"
    AWAITING_OTP = "AWAITING_OTP"


@dataclass
class LoginAttempt:
    step: LoginStep = LoginStep.AWAITING_EMAIL
    email: Optional[str] = None
    sid: Optional[str] = None


class LoginFlow:
    """Owns the in-progress login attempts."""

    def __init__(self) -> None:
        self._attempts: dict[int, LoginAttempt] = {}

    def start(self, user_id: int) -> LoginAttempt:
        attempt = LoginAttempt()
        self._attempts[user_id] = attempt
        return attempt

    def get(self, user_id: int) -> Optional[LoginAttempt]:
        return self._attempts.get(user_id)

    def is_awaiting(self, user_id: int, step: LoginStep) -> bool:
        attempt = self._attempts.get(user_id)
        return attempt is not None and attempt.step is step

    def otp_requested(self, user_id: int, email: str, sid: str) -> None:
        attempt = self._attempts.get(user_id)
        if attempt is None or attempt.step is not LoginStep.AWAITING_EMAIL:
            return
        attempt.email = email
        attempt.sid = sid
        attempt.step = LoginStep.AWAITING_OTP

    def finish(self, user_id: int) -> Optional[LoginAttempt]:
        return self._attempts.pop(user_id, None)

    def cancel(self, user_id: int) -> bool:
        return self._attempts.pop(user_id, None) is not None
