"""Tests for the console runner, with the terminal swapped for a script."""

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from appointment_dm.cli import run_console
from appointment_dm.machine import DialogueMachine, RetryPolicy, Timings
from appointment_dm.speech import ScriptedSpeechPort

FAST = Timings(speak_timeout_ms=200, listen_start_delay_ms=1,
               listen_timeout_ms=50, inter_prompt_delay_ms=1)


@pytest.fixture
def scripted(monkeypatch):
    """Replace the console port with a scripted one and return it."""
    ports = []

    def _factory(replies):
        def make():
            port = ScriptedSpeechPort(replies)
            ports.append(port)
            return port
        monkeypatch.setattr("appointment_dm.cli.ConsoleSpeechPort", make)
        return ports

    return _factory


class TestRunConsole:
    @pytest.mark.asyncio
    async def test_books_one_appointment(self, scripted, capsys):
        ports = scripted(["vlad", "monday", "no", "10 am", "yes"])
        code = await run_console(DialogueMachine(timings=FAST))

        assert code == 0
        assert "Booked: Vladislav Maraev on Monday at 10:00" in capsys.readouterr().out
        assert ports[0].closed

    @pytest.mark.asyncio
    async def test_gives_up_with_nothing_booked(self, scripted, capsys):
        scripted(["xyz"])
        machine = DialogueMachine(timings=FAST, retry=RetryPolicy(max_attempts=1))
        code = await run_console(machine)

        assert code == 1
        assert "Booked" not in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_repeat_until_caller_stops(self, scripted, capsys):
        scripted([
            "vlad", "monday", "no", "10 am", "yes",
            "emma", "friday", "yes", "sure",
        ])
        machine = DialogueMachine(timings=FAST, retry=RetryPolicy(max_attempts=1))
        code = await run_console(machine, repeat=True)

        out = capsys.readouterr().out
        assert code == 0
        assert "Booked: Vladislav Maraev on Monday at 10:00" in out
        assert "Booked: Emma Watson on Friday for the whole day" in out

    @pytest.mark.asyncio
    async def test_crashed_port_exits_cleanly(self, monkeypatch, capsys):
        class BrokenPort(ScriptedSpeechPort):
            async def listen(self, turn):
                raise RuntimeError("microphone unplugged")

        monkeypatch.setattr("appointment_dm.cli.ConsoleSpeechPort", BrokenPort)
        code = await run_console(DialogueMachine(timings=FAST))

        assert code == 1
        assert "Booked" not in capsys.readouterr().out
