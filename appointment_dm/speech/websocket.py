"""Browser speech client bridged over a FastAPI WebSocket.

The browser does the actual synthesis and recognition (e.g. with the Web
Speech API or a cloud SDK) and this port only relays JSON messages.

Server → client:
  {"type": "prepare", "locale": ..., "voice": ..., "no_input_timeout_ms": ...}
  {"type": "speak", "text": "...", "turn": 3}
  {"type": "listen", "turn": 5}
  {"type": "state", "state": "Greeting.AskDate.Prompt", "context": {...}}

Client → server:
  {"type": "prepare_ready"}
  {"type": "start"}
  {"type": "speak_complete", "turn": 3}
  {"type": "recognised", "turn": 5, "candidates": [{"utterance": "...", "confidence": 0.9}]}
  {"type": "no_input", "turn": 5}
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import WebSocket, WebSocketDisconnect

from appointment_dm.models.events import DialogEvent, parse_event
from appointment_dm.speech.base import SpeechPort

log = logging.getLogger("appointment_dm.speech.websocket")

_WIRE_TYPES = {
    "prepare_ready": "PREPARE_READY",
    "start": "START",
    "click": "START",
    "speak_complete": "SPEAK_COMPLETE",
    "recognised": "RECOGNISED",
    "no_input": "ASR_NOINPUT",
}


def wire_to_event(message: dict[str, Any]) -> Optional[DialogEvent]:
    """Translate a client message into a dialogue event (None if unusable)."""
    raw_type = str(message.get("type", ""))
    event_type = _WIRE_TYPES.get(raw_type.lower(), raw_type.upper())
    if event_type == "TIMER":
        # Timers are the session's own business
        log.warning("Client tried to inject a timer event; ignored")
        return None
    try:
        return parse_event({**message, "type": event_type})
    except ValueError as e:
        log.warning("Unusable client message %r: %s", raw_type, e)
        return None


class WebSocketSpeechPort(SpeechPort):
    def __init__(
        self,
        websocket: WebSocket,
        locale: str = "en-US",
        voice: str = "",
        no_input_timeout_ms: int = 5000,
    ) -> None:
        super().__init__()
        self._ws = websocket
        self._locale = locale
        self._voice = voice
        self._no_input_timeout_ms = no_input_timeout_ms
        self._closed = False

    async def _send(self, payload: dict[str, Any]) -> None:
        if self._closed:
            return
        try:
            await self._ws.send_json(payload)
        except (WebSocketDisconnect, RuntimeError) as e:
            log.info("Speech client gone while sending %s: %s", payload.get("type"), e)
            self._closed = True

    async def prepare(self) -> None:
        await self._send({
            "type": "prepare",
            "locale": self._locale,
            "voice": self._voice,
            "no_input_timeout_ms": self._no_input_timeout_ms,
        })

    async def speak(self, text: str, turn: int) -> None:
        await self._send({"type": "speak", "text": text, "turn": turn})

    async def listen(self, turn: int) -> None:
        await self._send({"type": "listen", "turn": turn})

    async def send_state(self, state: str, context: dict[str, Any]) -> None:
        """Push the current state label and slots for the UI to render."""
        await self._send({"type": "state", "state": state, "context": context})

    async def receive_loop(self) -> None:
        """Relay client messages into the session until the socket closes."""
        while not self._closed:
            message = await self._ws.receive_json()
            if not isinstance(message, dict):
                log.warning("Ignoring non-object client message")
                continue
            event = wire_to_event(message)
            if event is not None:
                self.emit(event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._ws.close()
        except RuntimeError:
            pass
