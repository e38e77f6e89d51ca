"""Tests for inbound event parsing and the speech port implementations."""

import asyncio
import io
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from appointment_dm.models import (
    NoInput,
    PrepareReady,
    Recognised,
    SpeakComplete,
    Start,
    TimerExpired,
    TimerKind,
    event_kind,
    parse_event,
)
from appointment_dm.speech import SILENT, ConsoleSpeechPort, Delayed, ScriptedSpeechPort
from appointment_dm.speech.websocket import wire_to_event


class _Collector:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


# ── Event payloads ──────────────────────────────────────────────────

class TestParseEvent:
    def test_recognised_with_candidates(self):
        event = parse_event({
            "type": "RECOGNISED",
            "turn": 7,
            "candidates": [{"utterance": "Emma", "confidence": 0.8}, {"utterance": "Anna"}],
        })
        assert isinstance(event, Recognised)
        assert event.utterance == "Emma"
        assert event.turn == 7

    def test_missing_candidates_is_unusable_recognition(self):
        event = parse_event({"type": "RECOGNISED", "turn": 2})
        assert isinstance(event, Recognised)
        assert event.utterance == ""

    def test_malformed_candidates_still_recognised(self):
        event = parse_event({"type": "RECOGNISED", "turn": 3, "candidates": "emma"})
        assert isinstance(event, Recognised)
        assert event.utterance == ""
        assert event.turn == 3

    def test_timer(self):
        event = parse_event({"type": "TIMER", "timer": "LISTEN_TIMEOUT"})
        assert event == TimerExpired(timer=TimerKind.LISTEN_TIMEOUT)
        assert event_kind(event) == "LISTEN_TIMEOUT"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError):
            parse_event({"type": "HANGUP"})

    def test_event_kinds(self):
        assert event_kind(Start()) == "START"
        assert event_kind(NoInput(turn=1)) == "ASR_NOINPUT"
        assert event_kind(SpeakComplete()) == "SPEAK_COMPLETE"


class TestWireToEvent:
    def test_lowercase_client_names(self):
        assert isinstance(wire_to_event({"type": "prepare_ready"}), PrepareReady)
        assert isinstance(wire_to_event({"type": "no_input", "turn": 4}), NoInput)
        assert wire_to_event({"type": "speak_complete", "turn": 3}).turn == 3

    def test_click_starts(self):
        assert isinstance(wire_to_event({"type": "click"}), Start)

    def test_recognised(self):
        event = wire_to_event({
            "type": "recognised", "turn": 5,
            "candidates": [{"utterance": "monday", "confidence": 0.9}],
        })
        assert event.utterance == "monday"

    def test_client_cannot_fire_timers(self):
        assert wire_to_event({"type": "timer", "timer": "LISTEN_TIMEOUT"}) is None

    def test_unknown_message_dropped(self):
        assert wire_to_event({"type": "dance"}) is None
        assert wire_to_event({}) is None


# ── ScriptedSpeechPort ──────────────────────────────────────────────

class TestScriptedSpeechPort:
    @pytest.mark.asyncio
    async def test_replies_in_order(self):
        sink = _Collector()
        port = ScriptedSpeechPort(["vlad", None, SILENT, Recognised.of("emma")])
        port.bind(sink)

        await port.prepare()
        await port.speak("Hello", turn=1)
        for turn in (2, 3, 4, 5, 6):
            await port.listen(turn)
        await asyncio.sleep(0)

        kinds = [(event_kind(e), e.turn) for e in sink.events]
        assert kinds == [
            ("PREPARE_READY", None),
            ("SPEAK_COMPLETE", 1),
            ("RECOGNISED", 2),
            ("ASR_NOINPUT", 3),
            ("RECOGNISED", 5),
        ]
        assert sink.events[-1].utterance == "emma"
        assert port.spoken == ["Hello"]
        assert port.remaining == 0

    @pytest.mark.asyncio
    async def test_delayed_reply(self):
        sink = _Collector()
        port = ScriptedSpeechPort([Delayed("monday", 0.05)])
        port.bind(sink)
        await port.listen(9)
        await asyncio.sleep(0)
        assert sink.events == []
        await asyncio.sleep(0.1)
        assert sink.events[0].utterance == "monday"
        assert sink.events[0].turn == 9

    @pytest.mark.asyncio
    async def test_speech_completion_can_be_withheld(self):
        sink = _Collector()
        port = ScriptedSpeechPort(complete_speech=False)
        port.bind(sink)
        await port.speak("Hi", turn=1)
        await asyncio.sleep(0)
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_unbound_port_drops_events(self):
        port = ScriptedSpeechPort(["vlad"])
        await port.listen(1)
        await asyncio.sleep(0)
        assert port.requests == [("listen", 1)]


# ── ConsoleSpeechPort ───────────────────────────────────────────────

@pytest.fixture
def pipe():
    read_fd, write_fd = os.pipe()
    reader = os.fdopen(read_fd, "r")
    writer = os.fdopen(write_fd, "w")
    yield reader, writer
    reader.close()
    writer.close()


class TestConsoleSpeechPort:
    @pytest.mark.asyncio
    async def test_line_becomes_recognition(self, pipe):
        reader, writer = pipe
        out = io.StringIO()
        sink = _Collector()
        port = ConsoleSpeechPort(stdin=reader, stdout=out)
        port.bind(sink)
        try:
            await port.prepare()
            await port.speak("Who are you meeting with?", turn=1)
            await port.listen(turn=2)
            writer.write("Emma\n")
            writer.flush()
            await asyncio.sleep(0.05)
        finally:
            await port.close()

        assert "assistant> Who are you meeting with?" in out.getvalue()
        assert "you> " in out.getvalue()
        assert [event_kind(e) for e in sink.events] == ["PREPARE_READY", "SPEAK_COMPLETE", "RECOGNISED"]
        assert sink.events[-1].utterance == "Emma"
        assert sink.events[-1].turn == 2

    @pytest.mark.asyncio
    async def test_empty_line_is_no_input(self, pipe):
        reader, writer = pipe
        sink = _Collector()
        port = ConsoleSpeechPort(stdin=reader, stdout=io.StringIO())
        port.bind(sink)
        try:
            await port.prepare()
            await port.listen(turn=4)
            writer.write("\n")
            writer.flush()
            await asyncio.sleep(0.05)
        finally:
            await port.close()

        assert isinstance(sink.events[-1], NoInput)
        assert sink.events[-1].turn == 4

    @pytest.mark.asyncio
    async def test_typing_while_not_listening_is_dropped(self, pipe):
        reader, writer = pipe
        sink = _Collector()
        port = ConsoleSpeechPort(stdin=reader, stdout=io.StringIO())
        port.bind(sink)
        try:
            await port.prepare()
            writer.write("hello?\n")
            writer.flush()
            await asyncio.sleep(0.05)
        finally:
            await port.close()

        assert [event_kind(e) for e in sink.events] == ["PREPARE_READY"]
