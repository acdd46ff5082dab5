"""In-process session store.

The store is the only state shared between concurrent requests.  Every
read and write goes through one lock so that simultaneous logins, lookups
and logouts never observe a half-updated mapping.  Callers receive copies
of session records; the store keeps the only mutable instance.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Session:
    """Server-issued proof of an authenticated identity."""

    id: str
    username: str
    created_at: datetime
    last_activity: datetime
    #: Idle window for this session; ``None`` uses the store default.
    idle_timeout: Optional[int] = None


class SessionStore:
    """Thread-safe mapping of session token to :class:`Session`.

    Parameters
    ----------
    idle_timeout: int
        Seconds of inactivity after which a session is considered expired.
        ``0`` disables expiry.
    clock: callable, optional
        Returns the current time as an aware ``datetime``.  Tests pass a
        controllable clock.
    """

    def __init__(
        self,
        idle_timeout: int = 1800,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.idle_timeout = idle_timeout
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._sessions

    def _is_expired_locked(self, session: Session, now: datetime) -> bool:
        timeout = self.idle_timeout if session.idle_timeout is None else session.idle_timeout
        if timeout <= 0:
            return False
        return now - session.last_activity > timedelta(seconds=timeout)

    def create(self, username: str, idle_timeout: Optional[int] = None) -> Session:
        """Mint a session, optionally with its own idle window."""
        now = self._clock()
        with self._lock:
            token = str(uuid.uuid4())
            while token in self._sessions:
                token = str(uuid.uuid4())
            session = Session(
                id=token,
                username=username,
                created_at=now,
                last_activity=now,
                idle_timeout=idle_timeout,
            )
            self._sessions[token] = session
        logger.info("Created session %s… for %s", token[:8], username)
        return session

    def lookup(self, token: str) -> Optional[Session]:
        """Return the live session for ``token`` without refreshing it."""
        now = self._clock()
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if self._is_expired_locked(session, now):
                del self._sessions[token]
                logger.info("Session %s… expired on lookup", token[:8])
                return None
            return session

    def touch(self, token: str) -> Optional[Session]:
        """Refresh ``last_activity`` and return the updated session."""
        now = self._clock()
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                return None
            if self._is_expired_locked(session, now):
                del self._sessions[token]
                logger.info("Session %s… expired on touch", token[:8])
                return None
            session = replace(session, last_activity=now)
            self._sessions[token] = session
            return session

    def revoke(self, token: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(token, None) is not None
        if removed:
            logger.info("Revoked session %s…", token[:8])
        return removed

    def sweep_expired(self) -> int:
        """Drop every idle session and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [
                token
                for token, session in self._sessions.items()
                if self._is_expired_locked(session, now)
            ]
            for token in expired:
                del self._sessions[token]
        if expired:
            logger.info("Swept %d idle session(s)", len(expired))
        return len(expired)
