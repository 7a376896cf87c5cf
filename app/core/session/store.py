"""In-memory session store guarded by a reader/writer lock."""

import logging
from datetime import datetime
from typing import Optional

from app.config import settings
from app.infra.locks import ReadWriteLock
from .models import Session, _utcnow

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Session store keyed by ``tenant:user_id``.

    Sessions idle for longer than the TTL are reported as missing, so the
    conversation restarts at MENU, and are dropped by ``sweep``.
    Nothing survives a process restart.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        """Initialize store.

        Args:
            ttl_seconds: Idle lifetime; defaults to settings, 0 disables expiry
        """
        self._ttl = settings.session_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._lock = ReadWriteLock()
        self._data: dict[str, Session] = {}

    @property
    def ttl_seconds(self) -> int:
        """Idle lifetime in seconds."""
        return self._ttl

    def get(
        self,
        key: str,
        now: Optional[datetime] = None,
    ) -> tuple[Optional[Session], bool]:
        """
        Get a session.

        Args:
            key: Session key (see session_key)
            now: Evaluation instant for expiry (defaults to current time)

        Returns:
            (session, found); expired sessions count as not found
        """
        with self._lock.read():
            session = self._data.get(key)

        if session is None:
            return None, False
        if session.is_expired(self._ttl, now):
            logger.debug(f"Session expired: {key}")
            return None, False
        return session, True

    def set(self, key: str, session: Session) -> None:
        """Store (overwrite) a session."""
        with self._lock.write():
            self._data[key] = session

    def delete(self, key: str) -> bool:
        """
        Delete a session.

        Returns:
            True if a session was removed
        """
        with self._lock.write():
            return self._data.pop(key, None) is not None

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Drop every expired session.

        Returns:
            Number of sessions removed
        """
        if self._ttl <= 0:
            return 0

        now = now or _utcnow()
        with self._lock.write():
            expired = [k for k, s in self._data.items() if s.is_expired(self._ttl, now)]
            for key in expired:
                del self._data[key]

        if expired:
            logger.info(f"Swept {len(expired)} expired sessions")
        return len(expired)

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._data)


# Singleton
_store: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get singleton SessionStore."""
    global _store
    if _store is None:
        _store = SessionStore()
    return _store
