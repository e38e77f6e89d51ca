"""Pure decision core of the appointment dialogue.

``DialogueMachine`` answers three questions and nothing else:

  * given a state, a context and an event, which transition fires
    (:meth:`transition`);
  * which transient states to pass straight through (:meth:`settle`);
  * what to do on entering a state (:meth:`entry_actions`).

It holds no mutable state of its own.  Running the dialogue (timers, the
speech port, stale-event filtering) belongs to ``DialogueSession``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from appointment_dm.lexicon import Lexicon, default_lexicon
from appointment_dm.machine import prompts
from appointment_dm.machine.actions import Action, Listen, Prepare, Speak, StartTimer, Timings
from appointment_dm.machine.states import INITIAL_STATE, DialogState as S
from appointment_dm.machine.table import ALWAYS, SLOT_GROUPS, Row, build_table
from appointment_dm.models.context import SessionContext
from appointment_dm.models.events import DialogEvent, TimerKind, event_kind


@dataclass(frozen=True)
class RetryPolicy:
    """How many attempts a slot gets before the dialogue gives up.

    ``max_attempts=None`` (the default) re-asks forever.
    """

    max_attempts: Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def exhausted(self, failures: int) -> bool:
        return self.max_attempts is not None and failures >= self.max_attempts


@dataclass(frozen=True)
class Outcome:
    """A fired transition: where it goes and the reduced context."""

    source: S
    target: S
    context: SessionContext
    label: str = ""


class DialogueMachine:
    """Transition table plus entry actions for the appointment dialogue."""

    def __init__(
        self,
        lexicon: Lexicon | None = None,
        timings: Timings | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self.lexicon = lexicon or default_lexicon()
        self.timings = timings or Timings()
        self.retry = retry or RetryPolicy()
        self._table = build_table(self.lexicon, self._retries_exhausted)
        self._prompts = {
            state: text for group in SLOT_GROUPS for state, text in group.prompts.items()
        }
        self._wait_timers = {group.wait_state: group.wait_timer for group in SLOT_GROUPS}
        self._ask_states = frozenset(group.ask_state for group in SLOT_GROUPS)

    @property
    def initial_state(self) -> S:
        return INITIAL_STATE

    def _retries_exhausted(self, ctx: SessionContext, event: DialogEvent) -> bool:
        return self.retry.exhausted(ctx.reask_count + 1)

    # ── Transitions ────────────────────────────────────────────

    def _fire(
        self, rows: list[Row], state: S, ctx: SessionContext, event: DialogEvent | None,
    ) -> Outcome | None:
        for row in rows:
            if row.guard(ctx, event):
                new_ctx = row.reduce(ctx, event)
                return Outcome(state, row.resolve_target(new_ctx), new_ctx, row.label)
        return None

    def transition(self, state: S, ctx: SessionContext, event: DialogEvent) -> Outcome | None:
        """The transition ``event`` fires in ``state``, or None if it is ignored."""
        rows = self._table.get((state, event_kind(event)))
        if not rows:
            return None
        return self._fire(rows, state, ctx, event)

    def settle(self, state: S, ctx: SessionContext) -> list[Outcome]:
        """Follow unconditional transitions out of transient states.

        Returns the chain of outcomes taken (empty when ``state`` is stable).
        """
        chain: list[Outcome] = []
        while (rows := self._table.get((state, ALWAYS))):
            outcome = self._fire(rows, state, ctx, None)
            if outcome is None:
                break
            chain.append(outcome)
            state, ctx = outcome.target, outcome.context
        return chain

    # ── Entry actions ──────────────────────────────────────────

    def prompt_text(self, state: S, ctx: SessionContext) -> str | None:
        """Text spoken on entering ``state``, if it speaks at all."""
        if state is S.GREETING:
            return prompts.GREETING
        if state is S.FINAL_CONFIRMATION:
            return prompts.FINAL_CONFIRMATION
        text = self._prompts.get(state)
        return text(ctx) if text else None

    def _timer(self, kind: TimerKind) -> StartTimer:
        return StartTimer(kind, self.timings.delay_for(kind))

    def entry_actions(self, state: S, ctx: SessionContext) -> list[Action]:
        if state is S.PREPARE:
            return [Prepare()]

        text = self.prompt_text(state, ctx)
        if text is not None:
            return [Speak(text), self._timer(TimerKind.SPEAK_TIMEOUT)]

        if state in self._wait_timers:
            return [self._timer(self._wait_timers[state])]

        if state in self._ask_states:
            return [Listen(), self._timer(TimerKind.LISTEN_TIMEOUT)]

        if state.name.startswith("WAIT_BEFORE_"):
            return [self._timer(TimerKind.TTS_DELAY)]

        return []

    def is_listening(self, state: S) -> bool:
        return state in self._ask_states

    def describe(self) -> dict[str, Any]:
        """States and transitions, for visualisation."""
        transitions = []
        for (state, kind), rows in self._table.items():
            for row in rows:
                target = row.target.value if isinstance(row.target, S) else "<dynamic>"
                transitions.append({
                    "from": state.value,
                    "event": kind,
                    "to": target,
                    "label": row.label,
                })
        return {
            "initial": self.initial_state.value,
            "states": [s.value for s in S],
            "transitions": transitions,
        }
