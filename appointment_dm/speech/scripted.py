"""Deterministic speech port that plays back a script of caller replies.

Used by the tests and by the demo endpoint.  Every ``listen`` consumes the
next reply:

  "some text"         → RECOGNISED with that utterance
  None                → ASR_NOINPUT
  SILENT              → nothing at all (the session's listen timeout fires)
  Delayed(text, s)    → RECOGNISED, but only after ``s`` seconds
  a DialogEvent       → delivered as-is, re-tagged with the listen's turn

Once the script runs out the port stays silent.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from pydantic import BaseModel

from appointment_dm.models.events import NoInput, PrepareReady, Recognised, SpeakComplete
from appointment_dm.speech.base import SpeechPort

log = logging.getLogger("appointment_dm.speech.scripted")


class _Silent:
    def __repr__(self) -> str:
        return "SILENT"


SILENT = _Silent()


@dataclass(frozen=True)
class Delayed:
    utterance: str
    delay_s: float


Reply = Union[str, None, _Silent, Delayed, BaseModel]


class ScriptedSpeechPort(SpeechPort):
    """Speech port driven by a fixed list of replies."""

    def __init__(
        self,
        replies: Iterable[Reply] = (),
        *,
        complete_speech: bool = True,
        ready: bool = True,
    ) -> None:
        super().__init__()
        self._replies: deque[Reply] = deque(replies)
        self.complete_speech = complete_speech
        self.ready = ready

        self.spoken: list[str] = []
        self.requests: list[tuple[str, Optional[int]]] = []
        self.closed = False

    @property
    def remaining(self) -> int:
        return len(self._replies)

    def extend(self, replies: Iterable[Reply]) -> None:
        self._replies.extend(replies)

    def _later(self, event, delay_s: float = 0.0) -> None:
        loop = asyncio.get_running_loop()
        if delay_s > 0:
            loop.call_later(delay_s, self.emit, event)
        else:
            loop.call_soon(self.emit, event)

    async def prepare(self) -> None:
        self.requests.append(("prepare", None))
        if self.ready:
            self._later(PrepareReady())

    async def speak(self, text: str, turn: int) -> None:
        self.requests.append(("speak", turn))
        self.spoken.append(text)
        if self.complete_speech:
            self._later(SpeakComplete(turn=turn))

    async def listen(self, turn: int) -> None:
        self.requests.append(("listen", turn))
        if not self._replies:
            log.debug("Script exhausted at turn %d", turn)
            return

        reply = self._replies.popleft()
        if reply is SILENT:
            return
        if reply is None:
            self._later(NoInput(turn=turn))
        elif isinstance(reply, Delayed):
            self._later(Recognised.of(reply.utterance, turn=turn), reply.delay_s)
        elif isinstance(reply, BaseModel):
            self._later(reply.model_copy(update={"turn": turn}))
        else:
            self._later(Recognised.of(reply, turn=turn))

    async def close(self) -> None:
        self.closed = True
