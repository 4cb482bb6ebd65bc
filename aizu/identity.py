"""
Identity Store.

Owns the anonymous id (one per device profile) and the session id (one per
stretch of activity). Both live in the injected storage so they survive
restarts of the host. Storage failures never reach the caller: reads and
writes that raise fall back to an in-memory copy for that call.
"""

import time
from typing import Callable, Optional
from uuid import uuid4

from aizu.logger import get_logger
from aizu.storage import MemoryStorage, StorageInterface


logger = get_logger(__name__)

ANONYMOUS_ID_KEY = "aizu_anonymous_id"
SESSION_ID_KEY = "aizu_session_id"
SESSION_ACTIVITY_KEY = "aizu_session_last_activity"

ANONYMOUS_ID_PREFIX = "a_"
SESSION_ID_PREFIX = "s_"


def generate_id(prefix: str) -> str:
    """Generate an opaque prefixed identifier."""
    return f"{prefix}{uuid4()}"


class IdentityStore:
    """Anonymous and session identity backed by a key-value store."""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        session_timeout: int = 30 * 60 * 1000,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            storage: Backend for persisted ids (in-memory when omitted)
            session_timeout: Inactivity window in milliseconds
            clock: Wall-clock source returning seconds
        """
        self._storage = storage if storage is not None else MemoryStorage()
        self._fallback = MemoryStorage()
        self._unsynced = set()
        self._session_timeout = session_timeout / 1000.0
        self._clock = clock

    # Storage access

    def _read(self, key: str) -> Optional[str]:
        if key in self._unsynced:
            return self._fallback.get(key)
        try:
            value = self._storage.get(key)
        except Exception as e:
            logger.debug("identity_storage_read_failed", key=key, error=str(e))
            return self._fallback.get(key)
        return value if value is not None else self._fallback.get(key)

    def _write(self, key: str, value: str) -> None:
        self._fallback.set(key, value)
        try:
            self._storage.set(key, value)
        except Exception as e:
            self._unsynced.add(key)
            logger.debug("identity_storage_write_failed", key=key, error=str(e))
        else:
            self._unsynced.discard(key)

    # Anonymous id

    def get_anonymous_id(self) -> str:
        """Return the anonymous id, creating and persisting one if absent."""
        anonymous_id = self._read(ANONYMOUS_ID_KEY)
        if not anonymous_id:
            anonymous_id = generate_id(ANONYMOUS_ID_PREFIX)
            self._write(ANONYMOUS_ID_KEY, anonymous_id)
        return anonymous_id

    def reset_anonymous_id(self) -> str:
        """Replace the anonymous id, e.g. on logout or erasure requests."""
        previous = self._read(ANONYMOUS_ID_KEY)
        anonymous_id = generate_id(ANONYMOUS_ID_PREFIX)
        while anonymous_id == previous:
            anonymous_id = generate_id(ANONYMOUS_ID_PREFIX)
        self._write(ANONYMOUS_ID_KEY, anonymous_id)
        logger.debug("anonymous_id_reset")
        return anonymous_id

    # Session id

    def _session_expired(self, now: float) -> bool:
        raw = self._read(SESSION_ACTIVITY_KEY)
        if raw is None:
            return True
        try:
            last_activity = float(raw)
        except ValueError:
            return True
        return now - last_activity > self._session_timeout

    def get_session_id(self) -> str:
        """
        Return the current session id and mark activity.

        A new session starts when none exists or the previous one has been
        idle for longer than the session timeout.
        """
        now = self._clock()
        session_id = self._read(SESSION_ID_KEY)
        if not session_id or self._session_expired(now):
            session_id = generate_id(SESSION_ID_PREFIX)
            self._write(SESSION_ID_KEY, session_id)
            logger.debug("session_started", session_id=session_id)
        self._write(SESSION_ACTIVITY_KEY, str(now))
        return session_id

    def reset_session(self) -> str:
        """Start a new session regardless of expiry."""
        previous = self._read(SESSION_ID_KEY)
        session_id = generate_id(SESSION_ID_PREFIX)
        while session_id == previous:
            session_id = generate_id(SESSION_ID_PREFIX)
        self._write(SESSION_ID_KEY, session_id)
        self._write(SESSION_ACTIVITY_KEY, str(self._clock()))
        logger.debug("session_reset", session_id=session_id)
        return session_id
