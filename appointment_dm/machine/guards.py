"""Guard predicates over (context, event).

Guards are side-effect free.  Tracing of which branch fired is the
runtime's job, never the predicate's.
"""

from __future__ import annotations

from typing import Callable

from appointment_dm.lexicon import EntryKind, Lexicon
from appointment_dm.models.context import SessionContext
from appointment_dm.models.events import DialogEvent, Recognised

Guard = Callable[[SessionContext, DialogEvent], bool]


def utterance_of(event: DialogEvent) -> str:
    """Top hypothesis of a recognition event; "" for anything malformed."""
    if not isinstance(event, Recognised):
        return ""
    return event.utterance.strip()


def recognised_as(lexicon: Lexicon, kind: EntryKind) -> Guard:
    """True when the event's utterance resolves to a value of ``kind``."""

    def guard(ctx: SessionContext, event: DialogEvent) -> bool:
        utterance = utterance_of(event)
        if not utterance:
            return False
        return lexicon.resolve(kind, utterance) is not None

    return guard


def is_full_day(ctx: SessionContext, event: DialogEvent) -> bool:
    return ctx.full_day is True


def always(ctx: SessionContext, event: DialogEvent) -> bool:
    return True
