"""In-memory session table keyed by chat user identity."""

import logging
import time
from dataclasses import dataclass, fields, replace
from typing import Callable, Optional

from ledgerbot.core.ttl import ExpiringIndex

logger = logging.getLogger(__name__)

DEFAULT_IDLE_SECONDS = 24 * 60 * 60


@dataclass
class Session:
    """Chat binding and credentials of one authenticated user."""

    user_id: int
    chat_id: int
    last_active: float
    token: Optional[str] = None
    refresh_token: Optional[str] = None
    organization_id: Optional[str] = None
    ledger_user_id: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)


_UPDATABLE = {f.name for f in fields(Session)} - {"user_id", "last_active"}


class SessionStore:
    """Owns every Session; other components go through these methods.

    Idle sessions are dropped lazily on read and in bulk by ``sweep``.
    """

    def __init__(
        self,
        idle_seconds: float = DEFAULT_IDLE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._sessions: dict[int, Session] = {}
        self._expiry: ExpiringIndex[int] = ExpiringIndex()
        self._by_ledger_user: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def store(
        self,
        user_id: int,
        chat_id: int,
        token: Optional[str] = None,
        organization_id: Optional[str] = None,
        refresh_token: Optional[str] = None,
        ledger_user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Session:
        """Create or replace the session for ``user_id``."""
        self._unlink(user_id)
        session = Session(
            user_id=user_id,
            chat_id=chat_id,
            last_active=self._clock(),
            token=token,
            refresh_token=refresh_token,
            organization_id=organization_id,
            ledger_user_id=ledger_user_id,
            email=email,
        )
        self._sessions[user_id] = session
        if ledger_user_id:
            self._by_ledger_user[ledger_user_id] = user_id
        self._touch(session)
        logger.debug(f"Session stored: user={user_id} chat={chat_id} has_token={bool(token)}")
        return session

    def update(self, user_id: int, **changes) -> Optional[Session]:
        """Apply partial field changes and mark the session active."""
        session = self.get(user_id)
        if session is None:
            return None

        unknown = set(changes) - _UPDATABLE
        if unknown:
            raise TypeError(f"Cannot update session fields: {sorted(unknown)}")

        updated = replace(session, **changes)
        self._unlink(user_id)
        self._sessions[user_id] = updated
        if updated.ledger_user_id:
            self._by_ledger_user[updated.ledger_user_id] = user_id
        self._touch(updated)
        logger.debug(f"Session updated: user={user_id}")
        return updated

    def get(self, user_id: int) -> Optional[Session]:
        """Return the session if it exists and has not gone idle."""
        session = self._sessions.get(user_id)
        if session is None:
            return None
        if self._is_idle(session, self._clock()):
            self.remove(user_id)
            return None
        return session

    def get_chat_id(self, user_id: int) -> Optional[int]:
        """Chat destination for ``user_id``; refreshes its activity."""
        session = self.get(user_id)
        if session is None:
            return None
        self._touch(session)
        return session.chat_id

    def find_by_ledger_user(self, ledger_user_id: str) -> Optional[Session]:
        user_id = self._by_ledger_user.get(ledger_user_id)
        if user_id is None:
            return None
        return self.get(user_id)

    def get_latest_token(self) -> Optional[str]:
        """Token of the most recently active session that holds one."""
        latest: Optional[Session] = None
        now = self._clock()
        for session in self._sessions.values():
            if not session.token or self._is_idle(session, now):
                continue
            if latest is None or session.last_active > latest.last_active:
                latest = session
        return latest.token if latest else None

    def clear_token(self, user_id: int) -> None:
        """Forget credentials but keep the chat binding."""
        session = self._sessions.get(user_id)
        if session is not None:
            session.token = None
            session.refresh_token = None
            logger.debug(f"Session token cleared: user={user_id}")

    def remove(self, user_id: int) -> None:
        self._unlink(user_id)
        if self._sessions.pop(user_id, None) is not None:
            logger.debug(f"Session removed: user={user_id}")
        self._expiry.discard(user_id)

    def sweep(self) -> list[int]:
        """Evict idle sessions. Returns the evicted user ids."""
        now = self._clock()
        evicted: list[int] = []
        for user_id in self._expiry.pop_expired(now):
            session = self._sessions.get(user_id)
            if session is not None and self._is_idle(session, now):
                self._unlink(user_id)
                del self._sessions[user_id]
                evicted.append(user_id)
                logger.debug(f"Inactive session cleaned up: user={user_id}")
        return evicted

    def _touch(self, session: Session) -> None:
        session.last_active = self._clock()
        self._expiry.schedule(session.user_id, session.last_active + self.idle_seconds)

    def _is_idle(self, session: Session, now: float) -> bool:
        return now - session.last_active > self.idle_seconds

    def _unlink(self, user_id: int) -> None:
        session = self._sessions.get(user_id)
        if session is not None and session.ledger_user_id:
            if self._by_ledger_user.get(session.ledger_user_id) == user_id:
                del self._by_ledger_user[session.ledger_user_id]
