"""Slot-filling dialogue state machine."""

from .actions import Action, Listen, Prepare, Speak, StartTimer, Timings
from .dialogue import DialogueMachine, Outcome, RetryPolicy
from .states import INITIAL_STATE, TERMINAL_STATES, DialogState
from .table import SLOT_GROUPS, SlotGroup

__all__ = [
    "Action",
    "DialogState",
    "DialogueMachine",
    "INITIAL_STATE",
    "Listen",
    "Outcome",
    "Prepare",
    "RetryPolicy",
    "SLOT_GROUPS",
    "SlotGroup",
    "Speak",
    "StartTimer",
    "TERMINAL_STATES",
    "Timings",
]
