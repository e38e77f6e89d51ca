"""SpeechPort ABC: the speech engine as seen by the dialogue.

The dialogue never waits on the speech engine directly.  It issues
fire-and-forget requests (``prepare``, ``speak``, ``listen``) and the port
reports results later by calling the bound event sink:

  prepare()          → PREPARE_READY
  speak(text, turn)  → SPEAK_COMPLETE (at most once; may never arrive)
  listen(turn)       → RECOGNISED | ASR_NOINPUT (at most once; may never arrive)

Each result should echo the ``turn`` of the request that produced it so the
session can discard answers to requests it has already given up on.  Ports
that cannot track turns may leave it as None.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from appointment_dm.models.events import DialogEvent

EventSink = Callable[[DialogEvent], None]


class SpeechPort(ABC):
    """Abstract speech engine: synthesis plus single-shot recognition."""

    def __init__(self) -> None:
        self._sink: Optional[EventSink] = None

    def bind(self, sink: EventSink) -> None:
        """Route this port's result events into a dialogue session."""
        self._sink = sink

    def emit(self, event: DialogEvent) -> None:
        """Deliver a result event to the bound session (dropped if unbound)."""
        if self._sink is not None:
            self._sink(event)

    @abstractmethod
    async def prepare(self) -> None:
        """Warm up the engine; answer with PREPARE_READY when usable."""

    @abstractmethod
    async def speak(self, text: str, turn: int) -> None:
        """Start synthesising ``text``; answer with SPEAK_COMPLETE when done.

        Must return promptly.  The completion is reported through the sink,
        never as this coroutine's return value.
        """

    @abstractmethod
    async def listen(self, turn: int) -> None:
        """Start one recognition; answer with RECOGNISED or ASR_NOINPUT."""

    async def close(self) -> None:
        """Release engine resources. Safe to call multiple times."""
