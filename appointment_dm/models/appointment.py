"""Pydantic model for an appointment confirmed during a dialogue."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from appointment_dm.models.context import SessionContext


class Appointment(BaseModel):
    """Result of one completed pass through the dialogue.

    Held in memory by the session only.
    """

    person: str
    date: str
    time: str = ""   # empty for full-day appointments
    full_day: bool = False
    confirmed: Optional[bool] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_context(cls, ctx: SessionContext) -> "Appointment":
        return cls(
            person=ctx.meeting_person,
            date=ctx.meeting_date,
            time="" if ctx.full_day else ctx.meeting_time,
            full_day=ctx.full_day,
            confirmed=ctx.confirmed,
        )

    def describe(self) -> str:
        when = "for the whole day" if self.full_day else f"at {self.time}"
        return f"{self.person} on {self.date} {when}"
