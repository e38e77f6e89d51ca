"""Command-line entry point.

Usage:
    python -m appointment_dm.cli console [--lexicon path.jsonl] [--max-attempts 3]
    python -m appointment_dm.cli serve [--host 0.0.0.0] [--port 8080]

``console`` runs one dialogue in the terminal: prompts are printed and
replies are typed (an empty line is "no input").  ``serve`` starts the
FastAPI app for browser speech clients.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from appointment_dm.config import settings
from appointment_dm.lexicon import default_lexicon, load_lexicon_jsonl
from appointment_dm.machine import TERMINAL_STATES, DialogState, DialogueMachine, RetryPolicy
from appointment_dm.models.events import Start
from appointment_dm.session import DialogueSession
from appointment_dm.speech.console import ConsoleSpeechPort

log = logging.getLogger("appointment_dm.cli")


async def run_console(machine: DialogueMachine, repeat: bool = False) -> int:
    """Run the dialogue on stdin/stdout. Returns a process exit code."""
    session = DialogueSession(port=ConsoleSpeechPort(), machine=machine)
    await session.start()
    try:
        await session.wait_for(DialogState.WAIT_TO_START, timeout=10)
        session.send(Start())
        while True:
            # Surface a crash of the session task instead of waiting forever
            waiter = asyncio.create_task(session.wait_for(*TERMINAL_STATES))
            done, _ = await asyncio.wait({waiter, session.task}, return_when=asyncio.FIRST_COMPLETED)
            if waiter not in done:
                waiter.cancel()
                break
            if session.state is DialogState.GAVE_UP or not repeat:
                break
            session.send(Start())
            await session.wait_until(lambda s: s not in TERMINAL_STATES, timeout=10)
    finally:
        await session.stop()

    for appointment in session.appointments:
        print(f"Booked: {appointment.describe()}")
    return 0 if session.appointments else 1


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(
        description="Voice-style appointment booking dialogue",
        prog="python -m appointment_dm.cli",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log state transitions")
    sub = parser.add_subparsers(dest="command", required=True)

    console = sub.add_parser("console", help="Run a dialogue in the terminal")
    console.add_argument("--lexicon", help="Lexicon JSONL file (default: packaged vocabulary)")
    console.add_argument(
        "--max-attempts", type=int, default=settings.max_attempts,
        help="Give up after this many failed attempts per slot (0 = never)",
    )
    console.add_argument("--repeat", action="store_true", help="Book another appointment after each one")

    serve = sub.add_parser("serve", help="Run the HTTP/WebSocket server")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)-28s %(levelname)-7s %(message)s",
        stream=sys.stderr,
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run("appointment_dm.app:app", host=args.host, port=args.port)
        return 0

    lexicon = load_lexicon_jsonl(args.lexicon) if args.lexicon else default_lexicon()
    machine = DialogueMachine(
        lexicon=lexicon,
        timings=settings.timings(),
        retry=RetryPolicy(max_attempts=args.max_attempts or None),
    )
    return asyncio.run(run_console(machine, repeat=args.repeat))


if __name__ == "__main__":
    sys.exit(main())
