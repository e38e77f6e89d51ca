"""Flat enumeration of every dialogue state.

Values are the hierarchical labels the host UI renders
(``Greeting.AskPerson.Prompt``); members are flat so the transition table
can key on them directly.
"""

from __future__ import annotations

from enum import Enum


class DialogState(str, Enum):
    PREPARE = "Prepare"
    WAIT_TO_START = "WaitToStart"
    GREETING = "Greeting.Start"

    ASK_PERSON_PROMPT = "Greeting.AskPerson.Prompt"
    ASK_PERSON_WAIT = "Greeting.AskPerson.WaitBeforeListen"
    ASK_PERSON_ASK = "Greeting.AskPerson.Ask"

    WAIT_BEFORE_ASK_DATE = "Greeting.WaitBeforeAskDate"
    ASK_DATE_PROMPT = "Greeting.AskDate.Prompt"
    ASK_DATE_WAIT = "Greeting.AskDate.WaitBeforeListen"
    ASK_DATE_ASK = "Greeting.AskDate.Ask"

    WAIT_BEFORE_ASK_FULL_DAY = "Greeting.WaitBeforeAskFullDay"
    ASK_FULL_DAY_PROMPT = "Greeting.AskFullDay.Prompt"
    ASK_FULL_DAY_WAIT = "Greeting.AskFullDay.WaitBeforeListen"
    ASK_FULL_DAY_ASK = "Greeting.AskFullDay.Ask"

    CONDITIONAL_TIME = "Greeting.ConditionalTime"

    WAIT_BEFORE_ASK_TIME = "Greeting.WaitBeforeAskTime"
    ASK_TIME_PROMPT = "Greeting.AskTime.Prompt"
    ASK_TIME_WAIT = "Greeting.AskTime.WaitBeforeListen"
    ASK_TIME_ASK = "Greeting.AskTime.Ask"

    WAIT_BEFORE_CONFIRM_APPOINTMENT = "Greeting.WaitBeforeConfirmAppointment"
    CONFIRM_FULL_DAY = "Greeting.ConfirmFullDay"
    CONFIRM_APPOINTMENT = "Greeting.ConfirmAppointment"
    CONFIRMATION_WAIT = "Greeting.ConfirmationListen.WaitBeforeListen"
    CONFIRMATION_ASK = "Greeting.ConfirmationListen.Ask"

    WAIT_BEFORE_FINAL_CONFIRMATION = "Greeting.WaitBeforeFinalConfirmation"
    FINAL_CONFIRMATION = "Greeting.FinalConfirmation"
    DONE = "Greeting.Done"

    # Only reachable with a bounded retry policy
    GAVE_UP = "Greeting.GaveUp"

    @property
    def group(self) -> str:
        """Slot group name for nested states ("AskPerson"), else the leaf name."""
        parts = self.value.split(".")
        if len(parts) >= 3:
            return parts[1]
        return parts[-1]


INITIAL_STATE = DialogState.PREPARE

# States that end one pass through the dialogue; both accept START again
TERMINAL_STATES = frozenset({DialogState.DONE, DialogState.GAVE_UP})
