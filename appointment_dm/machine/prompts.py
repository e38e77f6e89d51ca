"""Spoken prompt texts."""

from appointment_dm.models.context import SessionContext

GREETING = "Hi! Let's create an appointment."
ASK_PERSON = "Who are you meeting with?"
ASK_DATE = "On which day is your meeting?"
ASK_FULL_DAY = "Will it take the whole day?"
ASK_TIME = "What time is your meeting?"
FINAL_CONFIRMATION = "Your appointment has been created."


def confirm_full_day(ctx: SessionContext) -> str:
    return (
        f"Do you want me to create an appointment with {ctx.meeting_person} "
        f"on {ctx.meeting_date} for the whole day?"
    )


def confirm_appointment(ctx: SessionContext) -> str:
    return (
        f"Do you want me to create an appointment with {ctx.meeting_person} "
        f"on {ctx.meeting_date} at {ctx.meeting_time}?"
    )
