"""Per-connection dialogue session: runs the appointment state machine.

Each connected speech client (browser WebSocket, console, scripted demo)
gets a DialogueSession that:
  1. Owns the SessionContext for the lifetime of the dialogue
  2. Processes inbound events one at a time, in arrival order, through the
     pure DialogueMachine
  3. Carries out entry actions: speech requests and state-scoped timers
  4. Drops events left over from earlier turns (late recognitions, speech
     completions after a timeout already moved on)
  5. Keeps the appointments completed during the session
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from typing import Any, Callable, Optional

from appointment_dm.debug_events import DialogueTracer
from appointment_dm.machine import (
    TERMINAL_STATES,
    Action,
    DialogState,
    DialogueMachine,
    Listen,
    Outcome,
    Prepare,
    Speak,
    StartTimer,
)
from appointment_dm.models.appointment import Appointment
from appointment_dm.models.context import SessionContext
from appointment_dm.models.events import DialogEvent, TimerExpired, TimerKind, event_kind
from appointment_dm.speech.base import SpeechPort

log = logging.getLogger("appointment_dm.session")

_PORT_RESULTS = frozenset({"SPEAK_COMPLETE", "RECOGNISED", "ASR_NOINPUT"})


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "DialogueSession"] = {}


def register_session(session: "DialogueSession") -> str:
    """Register a session and return its unique ID."""
    session_id = secrets.token_urlsafe(18)
    session._session_id = session_id
    session._started_at = time.time()
    _active_sessions[session_id] = session
    log.info("Session registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    """Remove a session from the registry."""
    _active_sessions.pop(session_id, None)
    log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "DialogueSession"]:
    """Return all active sessions."""
    return _active_sessions


def get_session(session_id: str) -> "DialogueSession | None":
    """Look up a session by ID."""
    return _active_sessions.get(session_id)


class DialogueSession:
    """One appointment dialogue bound to one speech port.

    Typical lifecycle::

        session = DialogueSession(port=my_port)
        await session.start()               # enters Prepare, asks the port to get ready
        session.send(Start())               # the user's "click"
        await session.wait_for(DialogState.DONE)
        print(session.appointments[-1])
        await session.stop()
    """

    def __init__(
        self,
        port: SpeechPort,
        machine: DialogueMachine | None = None,
        context: SessionContext | None = None,
    ) -> None:
        self._port = port
        self._machine = machine or DialogueMachine()

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0

        self._state: DialogState = self._machine.initial_state
        self._context = context or SessionContext()
        self._turn = 0
        self._pending: Optional[str] = None
        self._appointments: list[Appointment] = []

        self._queue: asyncio.Queue[DialogEvent] = asyncio.Queue()
        self._timers: list[asyncio.Task] = []
        self._task: Optional[asyncio.Task] = None
        self._changed = asyncio.Event()

        # Debug support
        self._tracer: DialogueTracer | None = None
        self._paused = asyncio.Event()
        self._paused.set()  # Not paused initially

        port.bind(self.send)

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def state(self) -> DialogState:
        return self._state

    @property
    def state_label(self) -> str:
        return self._state.value

    @property
    def context(self) -> SessionContext:
        return self._context

    @property
    def turn(self) -> int:
        return self._turn

    @property
    def pending_request(self) -> Optional[str]:
        """"speak" or "listen" while a request awaits its result, else None."""
        return self._pending

    @property
    def appointments(self) -> list[Appointment]:
        return list(self._appointments)

    @property
    def is_done(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def attach_tracer(self, tracer: DialogueTracer) -> None:
        """Attach a tracer for real-time event streaming."""
        self._tracer = tracer

    def _trace(self, event_type: str, data: dict) -> None:
        if self._tracer:
            self._tracer.emit(event_type, self._state.value, data)

    def pause(self) -> None:
        """Pause event processing. Events still queue up, timers still fire."""
        self._paused.clear()
        self._trace("pause", {})
        log.info("Session %s paused", self._session_id)

    def resume(self) -> None:
        """Resume event processing after a pause."""
        self._paused.set()
        self._trace("resume", {})
        log.info("Session %s resumed", self._session_id)

    @property
    def is_paused(self) -> bool:
        return not self._paused.is_set()

    def send(self, event: DialogEvent) -> None:
        """Queue an inbound event. Also the sink the speech port reports to."""
        self._queue.put_nowait(event)

    async def start(self) -> asyncio.Task:
        """Enter the initial state and start processing events."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())
            log.info("Session %s started", self._session_id or hex(id(self)))
        return self._task

    async def stop(self) -> None:
        """Stop processing, cancel timers and close the port.

        A crash of the event loop is logged here rather than raised, so
        callers can always clean up with a plain ``await session.stop()``.
        """
        self._cancel_timers()
        task, self._task = self._task, None
        try:
            if task is not None:
                if not task.done():
                    task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    log.error("Session %s failed in %s: %s", self._session_id,
                              self._state.value, e, exc_info=True)
        finally:
            self._pending = None
            await self._port.close()
            log.info("Session %s stopped in %s", self._session_id, self._state.value)

    async def wait_until(
        self, predicate: Callable[[DialogState], bool], timeout: float | None = None,
    ) -> DialogState:
        """Wait until ``predicate(state)`` holds.

        States are checked after each batch of processing, so a state the
        dialogue passes straight through may never be observed; wait for
        states it rests in (WaitToStart, Done, GaveUp) or for "left X".
        """

        async def _wait() -> DialogState:
            while not predicate(self._state):
                self._changed.clear()
                await self._changed.wait()
            return self._state

        return await asyncio.wait_for(_wait(), timeout)

    async def wait_for(self, *states: DialogState, timeout: float | None = None) -> DialogState:
        """Wait until the dialogue rests in one of ``states``."""
        return await self.wait_until(lambda s: s in states, timeout)

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API.

        With detail=False: summary suitable for listing.
        With detail=True: adds the full context, appointments and trace log.
        """
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "state": self._state.value,
            "turn": self._turn,
            "is_done": self.is_done,
            "is_paused": self.is_paused,
            "started_at": self._started_at,
            "pending_request": self._pending,
            "context": self._context.summary(),
            "appointment_count": len(self._appointments),
        }
        if detail:
            d["context"] = self._context.model_dump(mode="json")
            d["appointments"] = [a.model_dump(mode="json") for a in self._appointments]
            if self._tracer:
                d["event_log"] = self._tracer.event_log
        return d

    # ── Internal: event loop ─────────────────────────────────

    async def _run(self) -> None:
        try:
            await self._enter(self._machine.initial_state, label="init", trigger="")
            while True:
                event = await self._queue.get()
                await self._paused.wait()
                await self._dispatch(event)
        finally:
            self._cancel_timers()

    async def _dispatch(self, event: DialogEvent) -> None:
        kind = event_kind(event)

        if event.turn is not None and event.turn != self._turn:
            log.debug("Stale %s (turn %d, now %d) dropped in %s",
                      kind, event.turn, self._turn, self._state.value)
            self._trace("stale_event", {"event": kind, "turn": event.turn, "current_turn": self._turn})
            return

        outcome = self._machine.transition(self._state, self._context, event)
        if outcome is None:
            log.debug("%s ignored in %s", kind, self._state.value)
            self._trace("ignored_event", {"event": kind})
            return

        if kind in _PORT_RESULTS:
            self._trace("event", {"event": kind, "utterance": getattr(event, "utterance", None)})

        self._note_outcome(outcome, kind)
        self._context = outcome.context
        await self._enter(outcome.target, label=outcome.label, trigger=kind)

    def _note_outcome(self, outcome: Outcome, kind: str) -> None:
        group = outcome.source.group
        if outcome.label == "reask":
            log.info("%s: nothing usable (%s), re-asking (failure %d)",
                     group, kind, outcome.context.reask_count)
        elif outcome.label == "gave_up":
            log.warning("%s: giving up after %d failed attempts",
                        group, outcome.context.reask_count)
        elif outcome.label == "recognised":
            log.info("%s filled: %s", group, outcome.context.summary())
            self._note_confirmation(outcome)

    def _note_confirmation(self, outcome: Outcome) -> None:
        # A "no" at the confirmation step still books the appointment
        if outcome.source is DialogState.CONFIRMATION_ASK and outcome.context.confirmed is False:
            log.warning(
                "Confirmation answered 'no' in session %s; proceeding to final "
                "confirmation as for 'yes'", self._session_id,
            )

    # ── Internal: state entry ────────────────────────────────

    def _set_state(self, target: DialogState, label: str, trigger: str) -> None:
        previous = self._state
        self._turn += 1
        self._state = target
        log.info("Dialogue %s → %s (%s)", previous.value, target.value, trigger or label)
        self._trace("transition", {
            "from": previous.value,
            "to": target.value,
            "event": trigger,
            "label": label,
            "turn": self._turn,
        })

    async def _enter(self, target: DialogState, label: str, trigger: str) -> None:
        # Timers and requests belong to the state being left
        self._cancel_timers()
        self._pending = None

        self._set_state(target, label, trigger)
        for step in self._machine.settle(target, self._context):
            self._context = step.context
            self._set_state(step.target, step.label, "ALWAYS")

        if self._state is DialogState.DONE:
            self._record_appointment()

        for action in self._machine.entry_actions(self._state, self._context):
            await self._perform(action)

        self._changed.set()

    def _record_appointment(self) -> None:
        appointment = Appointment.from_context(self._context)
        self._appointments.append(appointment)
        log.info("Appointment created: %s", appointment.describe())
        self._trace("appointment", appointment.model_dump(mode="json"))

    async def _perform(self, action: Action) -> None:
        turn = self._turn
        if isinstance(action, StartTimer):
            self._timers.append(asyncio.create_task(
                self._fire_timer(action.kind, action.delay_ms, turn)
            ))
        elif isinstance(action, Speak):
            self._pending = "speak"
            self._trace("request", {"kind": "speak", "text": action.text, "turn": turn})
            await self._port.speak(action.text, turn)
        elif isinstance(action, Listen):
            self._pending = "listen"
            self._trace("request", {"kind": "listen", "turn": turn})
            await self._port.listen(turn)
        elif isinstance(action, Prepare):
            self._trace("request", {"kind": "prepare", "turn": turn})
            await self._port.prepare()

    async def _fire_timer(self, kind: TimerKind, delay_ms: int, turn: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        self.send(TimerExpired(timer=kind, turn=turn))

    def _cancel_timers(self) -> None:
        for task in self._timers:
            task.cancel()
        self._timers.clear()
