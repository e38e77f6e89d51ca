"""Inbound dialogue events.

Events come from three places: the host (``PREPARE_READY``, ``START``), the
speech port (``SPEAK_COMPLETE``, ``RECOGNISED``, ``ASR_NOINPUT``) and the
runtime's own timers (``TIMER``).  Every event may carry the ``turn`` of the
request or timer that produced it; the runtime drops events whose turn is
older than the current one.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from appointment_dm.models.context import Candidate

log = logging.getLogger("appointment_dm.events")


class TimerKind(str, Enum):
    SPEAK_TIMEOUT = "SPEAK_TIMEOUT"
    LISTEN_START_DELAY = "LISTEN_START_DELAY"
    LISTEN_TIMEOUT = "LISTEN_TIMEOUT"
    TTS_DELAY = "TTS_DELAY"


class _Event(BaseModel):
    turn: Optional[int] = None


class PrepareReady(_Event):
    type: Literal["PREPARE_READY"] = "PREPARE_READY"


class Start(_Event):
    type: Literal["START"] = "START"


class SpeakComplete(_Event):
    type: Literal["SPEAK_COMPLETE"] = "SPEAK_COMPLETE"


class Recognised(_Event):
    type: Literal["RECOGNISED"] = "RECOGNISED"
    candidates: list[Candidate] = []

    @property
    def utterance(self) -> str:
        """Top hypothesis, or "" when the payload carried none."""
        if not self.candidates:
            return ""
        return self.candidates[0].utterance or ""

    @classmethod
    def of(cls, utterance: str, confidence: float = 1.0, turn: int | None = None) -> "Recognised":
        return cls(candidates=[Candidate(utterance=utterance, confidence=confidence)], turn=turn)


class NoInput(_Event):
    type: Literal["ASR_NOINPUT"] = "ASR_NOINPUT"


class TimerExpired(_Event):
    type: Literal["TIMER"] = "TIMER"
    timer: TimerKind


DialogEvent = Annotated[
    Union[PrepareReady, Start, SpeakComplete, Recognised, NoInput, TimerExpired],
    Field(discriminator="type"),
]

_adapter: TypeAdapter[DialogEvent] = TypeAdapter(DialogEvent)


def event_kind(event: DialogEvent) -> str:
    """Key used by the transition table: the event type, or the timer name."""
    if isinstance(event, TimerExpired):
        return event.timer.value
    return event.type


def parse_event(data: dict[str, Any]) -> DialogEvent:
    """Build an event from a wire payload.

    A ``RECOGNISED`` payload whose candidates are missing or malformed still
    yields a Recognised event, with no usable utterance, so the machine
    treats it as "not recognised".  Unknown types raise ValueError.
    """
    try:
        return _adapter.validate_python(data)
    except ValidationError as e:
        if data.get("type") == "RECOGNISED":
            log.debug("Malformed RECOGNISED payload: %s", e.errors()[:1])
            turn = data.get("turn")
            return Recognised(turn=turn if isinstance(turn, int) else None)
        raise ValueError(f"Invalid event payload: {data.get('type')!r}") from e
