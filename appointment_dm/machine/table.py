"""Flat transition table for the appointment dialogue.

Rows are keyed by ``(state, event kind)``; each key holds an ordered list of
guarded rows and the first row whose guard passes fires.  The four slot
groups and the confirmation step share one Prompt -> WaitBeforeListen -> Ask
template, expanded by :func:`slot_group_rows`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from appointment_dm.lexicon import EntryKind, Lexicon
from appointment_dm.machine import prompts
from appointment_dm.machine.guards import Guard, always, is_full_day, recognised_as
from appointment_dm.machine.reducers import (
    Fill,
    Reducer,
    fill_slot,
    identity,
    reask,
    reset_for_restart,
    set_confirmed,
    set_date,
    set_full_day,
    set_person,
    set_time,
)
from appointment_dm.machine.states import DialogState as S
from appointment_dm.models.context import SessionContext
from appointment_dm.models.events import TimerKind

# Event kind for transient states evaluated immediately on entry
ALWAYS = "ALWAYS"

Target = Union[S, Callable[[SessionContext], S]]
PromptText = Callable[[SessionContext], str]


@dataclass(frozen=True)
class Row:
    target: Target
    guard: Guard = always
    reduce: Reducer = identity
    label: str = ""

    def resolve_target(self, ctx: SessionContext) -> S:
        if isinstance(self.target, S):
            return self.target
        return self.target(ctx)


@dataclass(frozen=True)
class SlotGroup:
    """One Prompt/WaitBeforeListen/Ask group filling a single slot."""

    name: str
    kind: EntryKind
    prompts: dict[S, PromptText]        # prompt state -> spoken text
    wait_state: S
    ask_state: S
    next_state: S
    fill: Fill
    wait_timer: TimerKind = TimerKind.LISTEN_START_DELAY
    reask_target: Optional[Callable[[SessionContext], S]] = None

    def prompt_state_for(self, ctx: SessionContext) -> S:
        """Where a re-ask goes back to."""
        if self.reask_target is not None:
            return self.reask_target(ctx)
        return next(iter(self.prompts))


Table = dict[tuple[S, str], list[Row]]


@dataclass
class TableBuilder:
    lexicon: Lexicon
    gave_up: Guard
    table: Table = field(default_factory=dict)

    def on(self, state: S, kind: str | TimerKind, *rows: Row) -> None:
        key = (state, kind.value if isinstance(kind, TimerKind) else kind)
        self.table.setdefault(key, []).extend(rows)

    def slot_group_rows(self, group: SlotGroup) -> None:
        for prompt_state in group.prompts:
            self.on(prompt_state, "SPEAK_COMPLETE", Row(group.wait_state))
            self.on(prompt_state, TimerKind.SPEAK_TIMEOUT, Row(group.wait_state))

        self.on(group.wait_state, group.wait_timer, Row(group.ask_state))

        failure = [
            Row(S.GAVE_UP, guard=self.gave_up, reduce=reask, label="gave_up"),
            Row(group.prompt_state_for, reduce=reask, label="reask"),
        ]
        recognised = Row(
            group.next_state,
            guard=recognised_as(self.lexicon, group.kind),
            reduce=fill_slot(self.lexicon, group.kind, group.fill),
            label="recognised",
        )
        self.on(group.ask_state, "RECOGNISED", recognised, *failure)
        self.on(group.ask_state, "ASR_NOINPUT", *failure)
        self.on(group.ask_state, TimerKind.LISTEN_TIMEOUT, *failure)


def _confirm_prompt_state(ctx: SessionContext) -> S:
    return S.CONFIRM_FULL_DAY if ctx.full_day else S.CONFIRM_APPOINTMENT


SLOT_GROUPS: list[SlotGroup] = [
    SlotGroup(
        name="AskPerson",
        kind=EntryKind.PERSON,
        prompts={S.ASK_PERSON_PROMPT: lambda ctx: prompts.ASK_PERSON},
        wait_state=S.ASK_PERSON_WAIT,
        ask_state=S.ASK_PERSON_ASK,
        next_state=S.WAIT_BEFORE_ASK_DATE,
        fill=set_person,
    ),
    SlotGroup(
        name="AskDate",
        kind=EntryKind.DAY,
        prompts={S.ASK_DATE_PROMPT: lambda ctx: prompts.ASK_DATE},
        wait_state=S.ASK_DATE_WAIT,
        ask_state=S.ASK_DATE_ASK,
        next_state=S.WAIT_BEFORE_ASK_FULL_DAY,
        fill=set_date,
    ),
    SlotGroup(
        name="AskFullDay",
        kind=EntryKind.ANSWER,
        prompts={S.ASK_FULL_DAY_PROMPT: lambda ctx: prompts.ASK_FULL_DAY},
        wait_state=S.ASK_FULL_DAY_WAIT,
        ask_state=S.ASK_FULL_DAY_ASK,
        next_state=S.CONDITIONAL_TIME,
        fill=set_full_day,
    ),
    SlotGroup(
        name="AskTime",
        kind=EntryKind.TIME,
        prompts={S.ASK_TIME_PROMPT: lambda ctx: prompts.ASK_TIME},
        wait_state=S.ASK_TIME_WAIT,
        ask_state=S.ASK_TIME_ASK,
        next_state=S.WAIT_BEFORE_CONFIRM_APPOINTMENT,
        fill=set_time,
    ),
    SlotGroup(
        name="ConfirmationListen",
        kind=EntryKind.ANSWER,
        prompts={
            S.CONFIRM_FULL_DAY: prompts.confirm_full_day,
            S.CONFIRM_APPOINTMENT: prompts.confirm_appointment,
        },
        wait_state=S.CONFIRMATION_WAIT,
        ask_state=S.CONFIRMATION_ASK,
        # "no" lands here too; see DialogueSession._note_confirmation
        next_state=S.WAIT_BEFORE_FINAL_CONFIRMATION,
        fill=set_confirmed,
        wait_timer=TimerKind.TTS_DELAY,
        reask_target=_confirm_prompt_state,
    ),
]


def build_table(lexicon: Lexicon, gave_up: Guard) -> Table:
    """Expand the whole dialogue into its flat transition table."""
    b = TableBuilder(lexicon=lexicon, gave_up=gave_up)

    b.on(S.PREPARE, "PREPARE_READY", Row(S.WAIT_TO_START))
    b.on(S.WAIT_TO_START, "START", Row(S.GREETING))
    b.on(S.GREETING, "SPEAK_COMPLETE", Row(S.ASK_PERSON_PROMPT))
    b.on(S.GREETING, TimerKind.SPEAK_TIMEOUT, Row(S.ASK_PERSON_PROMPT))

    for group in SLOT_GROUPS:
        b.slot_group_rows(group)

    b.on(S.WAIT_BEFORE_ASK_DATE, TimerKind.TTS_DELAY, Row(S.ASK_DATE_PROMPT))
    b.on(S.WAIT_BEFORE_ASK_FULL_DAY, TimerKind.TTS_DELAY, Row(S.ASK_FULL_DAY_PROMPT))
    b.on(
        S.CONDITIONAL_TIME, ALWAYS,
        Row(S.CONFIRM_FULL_DAY, guard=is_full_day, label="full_day"),
        Row(S.WAIT_BEFORE_ASK_TIME, label="timed"),
    )
    b.on(S.WAIT_BEFORE_ASK_TIME, TimerKind.TTS_DELAY, Row(S.ASK_TIME_PROMPT))
    b.on(S.WAIT_BEFORE_CONFIRM_APPOINTMENT, TimerKind.TTS_DELAY, Row(S.CONFIRM_APPOINTMENT))
    b.on(S.WAIT_BEFORE_FINAL_CONFIRMATION, TimerKind.TTS_DELAY, Row(S.FINAL_CONFIRMATION))
    b.on(S.FINAL_CONFIRMATION, "SPEAK_COMPLETE", Row(S.DONE))
    b.on(S.FINAL_CONFIRMATION, TimerKind.SPEAK_TIMEOUT, Row(S.DONE))

    # Book another appointment in the same session
    b.on(S.DONE, "START", Row(S.ASK_PERSON_PROMPT, reduce=reset_for_restart, label="restart"))
    b.on(S.GAVE_UP, "START", Row(S.ASK_PERSON_PROMPT, reduce=reset_for_restart, label="restart"))

    return b.table
