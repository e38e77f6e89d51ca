"""Per-session trace broadcaster for the dialogue runtime.

The session reports what it does (transitions taken, speech requests
issued, events dropped as stale or ignored, appointments completed) to an
attached DialogueTracer.  The tracer keeps a bounded log and fans each
record out to subscriber queues, e.g. a debug WebSocket or the UI state
feed.  Decision logic never calls into it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, Optional, TypedDict

log = logging.getLogger("appointment_dm.debug_events")

TRACE_TYPES = frozenset({
    "transition", "request", "event", "stale_event", "ignored_event",
    "appointment", "pause", "resume",
})


class TraceEvent(TypedDict):
    type: str
    timestamp: float
    session_id: str
    state_id: str      # state label when the record was made
    data: dict


class _Subscriber:
    def __init__(self, types: Optional[frozenset[str]], maxsize: int) -> None:
        self.types = types
        self.queue: asyncio.Queue[TraceEvent] = asyncio.Queue(maxsize=maxsize)

    def offer(self, event: TraceEvent) -> None:
        if self.types is not None and event["type"] not in self.types:
            return
        if self.queue.full():
            # Slow consumer: lose the oldest record, keep the newest
            self.queue.get_nowait()
        self.queue.put_nowait(event)


class DialogueTracer:
    """Bounded trace log plus asyncio.Queue fan-out, one per session."""

    def __init__(self, session_id: str, max_log: int = 1000, queue_size: int = 200) -> None:
        self._session_id = session_id
        self._max_log = max_log
        self._queue_size = queue_size
        self._subscribers: list[_Subscriber] = []
        self._log: list[TraceEvent] = []

    @property
    def session_id(self) -> str:
        return self._session_id

    def subscribe(self, types: Iterable[str] | None = None) -> asyncio.Queue[TraceEvent]:
        """New subscriber queue, optionally limited to some record types."""
        wanted = frozenset(types) if types is not None else None
        if wanted is not None and not wanted <= TRACE_TYPES:
            raise ValueError(f"Unknown trace types: {sorted(wanted - TRACE_TYPES)}")
        sub = _Subscriber(wanted, self._queue_size)
        self._subscribers.append(sub)
        log.info("Trace subscriber added for session %s (total: %d)",
                 self._session_id, len(self._subscribers))
        return sub.queue

    def unsubscribe(self, queue: asyncio.Queue[TraceEvent]) -> None:
        self._subscribers = [s for s in self._subscribers if s.queue is not queue]
        log.info("Trace subscriber removed for session %s (total: %d)",
                 self._session_id, len(self._subscribers))

    def emit(self, event_type: str, state_id: str, data: dict) -> None:
        """Record one trace event and hand it to every matching subscriber."""
        event: TraceEvent = {
            "type": event_type,
            "timestamp": time.time(),
            "session_id": self._session_id,
            "state_id": state_id,
            "data": data,
        }
        self._log.append(event)
        if len(self._log) > self._max_log:
            del self._log[0]

        for sub in self._subscribers:
            sub.offer(event)

    @property
    def event_log(self) -> list[TraceEvent]:
        """Trace history, oldest first (a copy)."""
        return list(self._log)

    def events_of(self, event_type: str) -> list[TraceEvent]:
        return [e for e in self._log if e["type"] == event_type]

    def state_path(self) -> list[str]:
        """Labels of every state entered, in order."""
        return [e["data"]["to"] for e in self._log if e["type"] == "transition"]

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


# ── Global tracer registry ───────────────────────────────────────────

_tracers: dict[str, DialogueTracer] = {}


def get_tracer(session_id: str) -> DialogueTracer:
    """Get or create the tracer for a session."""
    if session_id not in _tracers:
        _tracers[session_id] = DialogueTracer(session_id)
        log.info("DialogueTracer created for session %s", session_id)
    return _tracers[session_id]


def remove_tracer(session_id: str) -> None:
    """Drop a session's tracer once the session ends."""
    if _tracers.pop(session_id, None) is not None:
        log.info("DialogueTracer removed for session %s", session_id)
