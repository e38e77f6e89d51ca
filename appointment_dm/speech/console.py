"""Terminal speech port: prompts are printed, replies are typed.

An empty line counts as "no input".  Lines typed while the dialogue is not
listening are dropped, the same way a microphone that is off hears nothing.
Uses ``loop.add_reader`` on the input stream, so it needs a selectable file
descriptor (POSIX terminals and pipes).
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional, TextIO

from appointment_dm.models.events import NoInput, PrepareReady, Recognised, SpeakComplete
from appointment_dm.speech.base import SpeechPort

log = logging.getLogger("appointment_dm.speech.console")


class ConsoleSpeechPort(SpeechPort):
    def __init__(
        self,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        prompt: str = "you> ",
    ) -> None:
        super().__init__()
        self._in = stdin or sys.stdin
        self._out = stdout or sys.stdout
        self._prompt = prompt
        self._listening_turn: Optional[int] = None
        self._reading = False

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()

    async def prepare(self) -> None:
        if not self._reading:
            asyncio.get_running_loop().add_reader(self._in.fileno(), self._on_line)
            self._reading = True
        self.emit(PrepareReady())

    async def speak(self, text: str, turn: int) -> None:
        self._write(f"assistant> {text}\n")
        self.emit(SpeakComplete(turn=turn))

    async def listen(self, turn: int) -> None:
        self._listening_turn = turn
        self._write(self._prompt)

    def _on_line(self) -> None:
        line = self._in.readline()
        if line == "":
            # EOF: stop reading, leave the pending listen to time out
            self._stop_reading()
            return

        turn, self._listening_turn = self._listening_turn, None
        if turn is None:
            log.debug("Input while not listening dropped: %r", line.strip())
            return

        text = line.strip()
        self.emit(Recognised.of(text, turn=turn) if text else NoInput(turn=turn))

    def _stop_reading(self) -> None:
        if self._reading:
            try:
                asyncio.get_running_loop().remove_reader(self._in.fileno())
            except RuntimeError:
                pass
            self._reading = False

    async def close(self) -> None:
        self._stop_reading()
