"""Call-progress event broadcaster for the live dashboard.

Every step of a call (language chosen, answer recorded, profile saved,
SMS sent, ...) is published here. Events are kept in a bounded log and
pushed to every connected subscriber's asyncio.Queue for delivery over
WebSocket. Publishing is best-effort: a failure is logged and never
reaches the caller of ``publish``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Optional, TypedDict

log = logging.getLogger("labourline.telemetry")

INFO = "INFO"
SUCCESS = "SUCCESS"
WARNING = "WARNING"
ERROR = "ERROR"


class CallEvent(TypedDict):
    call_id: str
    type: str          # CALL_START | LANGUAGE_SELECT | ... | CALL_COMPLETE | ERROR
    message: str
    status: str        # INFO | SUCCESS | WARNING | ERROR
    timestamp: float
    data: dict[str, Any]


class TelemetryBroadcaster:
    """Fan-out of call events using asyncio.Queue per subscriber."""

    def __init__(self, history: int = 500, queue_size: int = 200) -> None:
        self._subscribers: list[asyncio.Queue[CallEvent]] = []
        self._event_log: deque[CallEvent] = deque(maxlen=history)
        self._queue_size = queue_size

    def subscribe(self) -> asyncio.Queue[CallEvent]:
        """Create a new subscriber queue and return it."""
        q: asyncio.Queue[CallEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.append(q)
        log.info("Dashboard subscriber added (total: %d)", len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[CallEvent]) -> None:
        """Remove a subscriber queue."""
        try:
            self._subscribers.remove(q)
        except ValueError:
            pass
        log.info("Dashboard subscriber removed (total: %d)", len(self._subscribers))

    def publish(
        self,
        call_id: str,
        event_type: str,
        message: str,
        status: str = INFO,
        **data: Any,
    ) -> Optional[CallEvent]:
        """Record and broadcast an event. Returns None if publishing failed."""
        try:
            event: CallEvent = {
                "call_id": call_id,
                "type": event_type,
                "message": message,
                "status": status,
                "timestamp": time.time(),
                "data": data,
            }
            self._event_log.append(event)
            self._fan_out(event)
        except Exception:
            log.exception("Failed to publish %s event for call %s", event_type, call_id)
            return None
        log.debug("Published %s for call %s", event_type, call_id)
        return event

    def _fan_out(self, event: CallEvent) -> None:
        for q in list(self._subscribers):
            try:
                q.put_nowait(event)
            except asyncio.QueueFull:
                # Drop oldest event to make room
                try:
                    q.get_nowait()
                    q.put_nowait(event)
                except (asyncio.QueueEmpty, asyncio.QueueFull):
                    pass

    def events_for(self, call_id: str) -> list[CallEvent]:
        return [e for e in self._event_log if e["call_id"] == call_id]

    @property
    def event_log(self) -> list[CallEvent]:
        """Recent event history, oldest first."""
        return list(self._event_log)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
