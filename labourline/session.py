"""In-flight call sessions, keyed by the provider's call identifier.

Every inbound call gets one CallSession that lives here from the first
webhook until the finalization pipeline releases it. The store is the
only shared mutable state between the webhook path and the background
pipeline, so every operation takes the lock.

Nothing is persisted: a restart loses active calls, and those callers
simply call again.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from labourline.models.call import CallSession

log = logging.getLogger("labourline.session")


def redact_pii(value: str) -> str:
    """Mask PII for logging: show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


class SessionExpired(LookupError):
    """No session for this call: it expired, finished, or never existed."""

    def __init__(self, call_id: str) -> None:
        super().__init__(f"No active session for call {call_id}")
        self.call_id = call_id


class SessionStore:
    """Thread-safe holder of active call sessions.

    Typical lifecycle::

        store = SessionStore()
        store.create("CA123", "+919800000000")
        store.mutate("CA123", lambda s: s.collected_fields.update(name="https://..."))
        session = store.claim("CA123")   # pipeline takes ownership
        ...
        store.remove("CA123")
    """

    def __init__(self) -> None:
        self._sessions: dict[str, CallSession] = {}
        self._lock = threading.RLock()

    def create(self, call_id: str, caller_address: str) -> CallSession:
        """Start a session for a new call, replacing any stale one with the same id."""
        session = CallSession(call_id=call_id, caller_address=caller_address)
        with self._lock:
            if call_id in self._sessions:
                log.warning("Replacing existing session for call %s", call_id)
            self._sessions[call_id] = session
        log.info("Session created: %s from %s", call_id, redact_pii(caller_address))
        return session

    def get(self, call_id: str) -> Optional[CallSession]:
        """Return a snapshot of the session, or None if there isn't one."""
        with self._lock:
            session = self._sessions.get(call_id)
            return session.model_copy(deep=True) if session else None

    def mutate(self, call_id: str, fn: Callable[[CallSession], None]) -> CallSession:
        """Apply ``fn`` to the live session under the lock and return a snapshot.

        Raises SessionExpired if the call has no session.
        """
        with self._lock:
            session = self._sessions.get(call_id)
            if session is None:
                raise SessionExpired(call_id)
            fn(session)
            return session.model_copy(deep=True)

    def claim(self, call_id: str) -> Optional[CallSession]:
        """Hand the session to the finalization pipeline.

        Returns a snapshot the first time; None if the session is gone or
        has already been claimed, so a repeated dispatch does nothing.
        """
        with self._lock:
            session = self._sessions.get(call_id)
            if session is None or session.claimed:
                return None
            session.claimed = True
            return session.model_copy(deep=True)

    def remove(self, call_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(call_id, None) is not None
        if removed:
            log.info("Session removed: %s", call_id)
        return removed

    def snapshot(self) -> list[CallSession]:
        """All active sessions, for the admin API."""
        with self._lock:
            return [s.model_copy(deep=True) for s in self._sessions.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, call_id: object) -> bool:
        with self._lock:
            return call_id in self._sessions
