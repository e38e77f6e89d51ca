"""Pydantic model tracking the collected slots through one dialogue."""

from typing import Optional

from pydantic import BaseModel


class Candidate(BaseModel):
    """One recognition hypothesis from the speech engine."""

    utterance: str = ""
    confidence: float = 1.0


class SessionContext(BaseModel):
    """Mutable record of the appointment being built.

    Owned by a single dialogue instance.  The state machine never edits it
    in place: each transition's reducer returns an updated copy, which the
    runtime swaps in.
    """

    meeting_person: str = ""
    meeting_date: str = ""
    meeting_time: str = ""      # stays empty when full_day is set
    full_day: bool = False

    # Raw result that filled the last slot; None after every re-ask
    last_result: Optional[list[Candidate]] = None

    # Answer given at the confirmation step
    confirmed: Optional[bool] = None

    # Consecutive failed attempts for the active slot
    reask_count: int = 0

    def summary(self) -> dict:
        """Slot values only, for status views and logs."""
        return self.model_dump(
            include={"meeting_person", "meeting_date", "meeting_time", "full_day"}
        )
