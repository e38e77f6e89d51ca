"""Context reducers: ``(SessionContext, event) -> SessionContext``.

Each reducer is total and returns a new context; the input is never
modified.
"""

from __future__ import annotations

from typing import Any, Callable

from appointment_dm.lexicon import EntryKind, Lexicon
from appointment_dm.machine.guards import utterance_of
from appointment_dm.models.context import SessionContext
from appointment_dm.models.events import DialogEvent, Recognised

Reducer = Callable[[SessionContext, DialogEvent], SessionContext]
Fill = Callable[[Any], dict[str, Any]]


def identity(ctx: SessionContext, event: DialogEvent) -> SessionContext:
    return ctx


def reask(ctx: SessionContext, event: DialogEvent) -> SessionContext:
    """Forget the last result and count the failed attempt."""
    return ctx.model_copy(update={
        "last_result": None,
        "reask_count": ctx.reask_count + 1,
    })


def fill_slot(lexicon: Lexicon, kind: EntryKind, fill: Fill) -> Reducer:
    """Resolve the utterance and write the slot fields ``fill`` returns.

    Only valid behind a ``recognised_as`` guard for the same lexicon and
    kind; an utterance that does not resolve raises ValueError.
    """

    def reducer(ctx: SessionContext, event: DialogEvent) -> SessionContext:
        value = lexicon.resolve(kind, utterance_of(event))
        if value is None or not isinstance(event, Recognised):
            raise ValueError(f"{kind.value} slot filled from an unrecognised event")
        update = fill(value)
        update["last_result"] = [c.model_copy() for c in event.candidates]
        update["reask_count"] = 0
        return ctx.model_copy(update=update)

    return reducer


# ── Per-slot field writers ───────────────────────────────────────

def set_person(value: str) -> dict[str, Any]:
    return {"meeting_person": value}


def set_date(value: str) -> dict[str, Any]:
    return {"meeting_date": value}


def set_full_day(value: bool) -> dict[str, Any]:
    update: dict[str, Any] = {"full_day": bool(value)}
    if value:
        update["meeting_time"] = ""
    return update


def set_time(value: str) -> dict[str, Any]:
    return {"meeting_time": value}


def set_confirmed(value: bool) -> dict[str, Any]:
    return {"confirmed": bool(value)}


def reset_for_restart(ctx: SessionContext, event: DialogEvent) -> SessionContext:
    """Start another appointment: keep the slots, drop per-run bookkeeping."""
    return ctx.model_copy(update={
        "last_result": None,
        "confirmed": None,
        "reask_count": 0,
    })
