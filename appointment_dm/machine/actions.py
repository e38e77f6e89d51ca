"""Entry actions returned by the machine and executed by the runtime.

The machine never talks to the speech engine or starts timers itself: on
entering a state it hands back a list of these, and the session carries
them out.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel

from appointment_dm.models.events import TimerKind


class Timings(BaseModel):
    """Delays in milliseconds, one per timer kind."""

    speak_timeout_ms: int = 5000
    listen_start_delay_ms: int = 1000
    listen_timeout_ms: int = 6000
    inter_prompt_delay_ms: int = 500

    def delay_for(self, kind: TimerKind) -> int:
        return {
            TimerKind.SPEAK_TIMEOUT: self.speak_timeout_ms,
            TimerKind.LISTEN_START_DELAY: self.listen_start_delay_ms,
            TimerKind.LISTEN_TIMEOUT: self.listen_timeout_ms,
            TimerKind.TTS_DELAY: self.inter_prompt_delay_ms,
        }[kind]


@dataclass(frozen=True)
class Prepare:
    """Ask the speech engine to get ready."""


@dataclass(frozen=True)
class Speak:
    text: str


@dataclass(frozen=True)
class Listen:
    """Activate the microphone for one recognition."""


@dataclass(frozen=True)
class StartTimer:
    kind: TimerKind
    delay_ms: int


Action = Prepare | Speak | Listen | StartTimer
