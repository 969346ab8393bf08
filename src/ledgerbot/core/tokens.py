"""Access-token freshness checks and deduplicated refresh."""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol

from jose import jwt
from jose.exceptions import JWTError

from ledgerbot.core.sessions import SessionStore
from ledgerbot.errors import AuthError, BotError

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_THRESHOLD = 5 * 60


class TokenRefresher(Protocol):
    async def refresh_token(self, refresh_token: str) -> str: ...


class AuthStatus(str, Enum):
    OK = "ok"
    NOT_AUTHENTICATED = "not_authenticated"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AuthCheck:
    """Outcome of the per-request credential check."""

    status: AuthStatus
    token: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is AuthStatus.OK

    @property
    def message(self) -> str:
        if self.status is AuthStatus.EXPIRED:
            return "Your session has expired. Please login again using /login."
        if self.status is AuthStatus.NOT_AUTHENTICATED:
            return "Please login first using /login command to access this feature."
        return ""


def decode_expiry(token: str) -> float:
    """Return the ``exp`` claim of a JWT without verifying its signature.

    Raises:
        ValueError: If the token is not a well-formed JWT with a numeric exp
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError as e:
        raise ValueError(f"Undecodable token: {e}")

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        raise ValueError("Token has no exp claim")
    return float(exp)


class TokenLifecycleManager:
    """Keeps session access tokens fresh.

    Concurrent refreshes of the same refresh credential share one in-flight
    exchange; the marker is dropped as soon as that exchange settles.
    """

    def __init__(
        self,
        ledger: TokenRefresher,
        sessions: SessionStore,
        threshold_seconds: float = DEFAULT_REFRESH_THRESHOLD,
        clock: Callable[[], float] = time.time,
    ):
        self._ledger = ledger
        self._sessions = sessions
        self.threshold_seconds = threshold_seconds
        self._clock = clock
        self._in_flight: dict[str, asyncio.Future] = {}

    def is_expiring_soon(self, token: str) -> bool:
        """True when the token expires within the threshold or is malformed."""
        try:
            expires_at = decode_expiry(token)
        except ValueError as e:
            logger.warning(f"Token expiration check failed: {e}")
            return True
        return (expires_at - self._clock()) < self.threshold_seconds

    def pending_refreshes(self) -> int:
        return len(self._in_flight)

    async def refresh(self, refresh_token: str) -> str:
        """Exchange a refresh credential for a new access token.

        Raises:
            AuthError: If the exchange failed for any reason
        """
        future = self._in_flight.get(refresh_token)
        if future is None:
            future = asyncio.ensure_future(self._exchange(refresh_token))
            self._in_flight[refresh_token] = future
        # One caller being cancelled must not cancel the shared exchange.
        return await asyncio.shield(future)

    async def _exchange(self, refresh_token: str) -> str:
        try:
            return await self._ledger.refresh_token(refresh_token)
        except BotError as e:
            logger.error(f"Token refresh failed: {e}")
            raise AuthError("Failed to refresh session") from e
        finally:
            self._in_flight.pop(refresh_token, None)

    async def ensure_fresh(self, user_id: int) -> AuthCheck:
        """Return a usable token for ``user_id``, refreshing it if needed.

        A failed refresh clears the stored credentials; it is never retried.
        """
        session = self._sessions.get(user_id)
        if session is None or not session.token:
            return AuthCheck(AuthStatus.NOT_AUTHENTICATED)

        if not self.is_expiring_soon(session.token):
            return AuthCheck(AuthStatus.OK, session.token)

        refresh_token = session.refresh_token
        if not refresh_token:
            self.invalidate(user_id)
            return AuthCheck(AuthStatus.EXPIRED)

        try:
            new_token = await self.refresh(refresh_token)
        except AuthError:
            current = self._sessions.get(user_id)
            if current is not None and current.refresh_token == refresh_token:
                self.invalidate(user_id)
            return AuthCheck(AuthStatus.EXPIRED)

        current = self._sessions.get(user_id)
        if current is None or current.refresh_token != refresh_token:
            # Logged out or re-authenticated while the refresh was in flight.
            return AuthCheck(AuthStatus.NOT_AUTHENTICATED)

        self._sessions.update(user_id, token=new_token)
        logger.info(f"Token refreshed successfully: user={user_id}")
        return AuthCheck(AuthStatus.OK, new_token)

    def invalidate(self, user_id: int) -> None:
        """Drop the credentials of a user whose token is no longer valid."""
        self._sessions.clear_token(user_id)
