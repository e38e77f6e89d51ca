"""Data models for the dialogue layer."""

from .appointment import Appointment
from .context import Candidate, SessionContext
from .events import (
    DialogEvent,
    NoInput,
    PrepareReady,
    Recognised,
    SpeakComplete,
    Start,
    TimerExpired,
    TimerKind,
    event_kind,
    parse_event,
)

__all__ = [
    "Appointment",
    "Candidate",
    "DialogEvent",
    "NoInput",
    "PrepareReady",
    "Recognised",
    "SessionContext",
    "SpeakComplete",
    "Start",
    "TimerExpired",
    "TimerKind",
    "event_kind",
    "parse_event",
]
