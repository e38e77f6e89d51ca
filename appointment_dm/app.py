"""FastAPI application — browser speech bridge plus status and debug API.

Endpoints:

  GET  /health                          Health check
  WS   /ws/dialogue                     One dialogue per connection (browser speech client)
  GET  /api/lexicon                     Loaded vocabulary
  GET  /api/machine                     States and transition table
  GET  /api/sessions                    Active session summaries
  GET  /api/sessions/{id}               One session in detail
  POST /api/sessions/demo               Run a scripted dialogue (no microphone needed)
  POST /api/sessions/{id}/pause         Admin: hold event processing
  POST /api/sessions/{id}/resume        Admin: continue event processing
  WS   /api/sessions/{id}/debug         Admin: live trace stream

The browser flow:
  1. Browser connects to WS /ws/dialogue
  2. Server sends "prepare"; browser readies its recognizer and answers "prepare_ready"
  3. User clicks start → browser sends "start"
  4. Server sends "speak"/"listen" requests; browser answers "speak_complete",
     "recognised" or "no_input", echoing each request's turn
  5. Server pushes "state" messages for the UI after every transition
"""

from __future__ import annotations

# Load .env into os.environ before settings are read
from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
import time
from collections import deque
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-28s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from appointment_dm.auth import require_admin_token, require_admin_ws
from appointment_dm.config import settings
from appointment_dm.debug_events import get_tracer, remove_tracer
from appointment_dm.lexicon import Lexicon, default_lexicon, load_lexicon_jsonl
from appointment_dm.machine import TERMINAL_STATES, DialogState, DialogueMachine
from appointment_dm.models.events import Start
from appointment_dm.session import (
    DialogueSession,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)
from appointment_dm.speech.scripted import ScriptedSpeechPort
from appointment_dm.speech.websocket import WebSocketSpeechPort

log = logging.getLogger("appointment_dm.app")

_START_TIME = time.time()

DEMO_REPLIES: list[Optional[str]] = ["vlad", "monday", "no", "10 am", "yes"]


class DemoRequest(BaseModel):
    replies: Optional[list[Optional[str]]] = None


def load_configured_lexicon() -> Lexicon:
    if settings.lexicon_path:
        log.info("Loading lexicon from %s", settings.lexicon_path)
        return load_lexicon_jsonl(settings.lexicon_path)
    return default_lexicon()


def build_machine() -> DialogueMachine:
    """The shared, stateless machine configured from settings."""
    return DialogueMachine(
        lexicon=load_configured_lexicon(),
        timings=settings.timings(),
        retry=settings.retry_policy(),
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    for warning in settings.validate_startup():
        log.warning(warning)

    machine = build_machine()

    app = FastAPI(
        title="Appointment Dialogue Manager",
        description="Voice-driven slot-filling dialogue for booking appointments",
        version="0.1.0",
    )
    app.state.machine = machine

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        """Lightweight health check — confirms the event loop is responsive."""
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "sessions": len(get_active_sessions()),
        })

    # ── Vocabulary and machine description ─────────────────────

    @app.get("/api/lexicon")
    async def get_lexicon() -> JSONResponse:
        entries = [e.model_dump(mode="json") for e in machine.lexicon]
        return JSONResponse({"entries": entries, "count": len(entries)})

    @app.get("/api/machine")
    async def get_machine() -> JSONResponse:
        return JSONResponse(machine.describe())

    # ── Browser speech client ──────────────────────────────────

    @app.websocket("/ws/dialogue")
    async def dialogue_ws(websocket: WebSocket) -> None:
        """Run one dialogue against a browser speech client."""
        await websocket.accept()

        port = WebSocketSpeechPort(
            websocket,
            locale=settings.locale,
            voice=settings.tts_voice,
            no_input_timeout_ms=settings.no_input_timeout_ms,
        )
        session = DialogueSession(port=port, machine=machine)
        sid = register_session(session)
        tracer = get_tracer(sid)
        session.attach_tracer(tracer)
        feed = tracer.subscribe(types={"transition"})

        async def _push_states() -> None:
            while True:
                record = await feed.get()
                await port.send_state(record["data"]["to"], session.context.summary())

        await websocket.send_json({"type": "session", "session_id": sid})
        receiver = asyncio.create_task(port.receive_loop())
        pusher = asyncio.create_task(_push_states())
        runner = await session.start()

        try:
            done, _ = await asyncio.wait({receiver, runner}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    log.error("Dialogue %s ended with error: %s", sid, exc)
        finally:
            receiver.cancel()
            pusher.cancel()
            tracer.unsubscribe(feed)
            await session.stop()
            remove_tracer(sid)
            unregister_session(sid)
            log.info("Dialogue WebSocket %s closed", sid)

    # ── Session API ────────────────────────────────────────────

    @app.get("/api/sessions")
    async def list_sessions() -> JSONResponse:
        """Return summary of all active dialogue sessions."""
        sessions = get_active_sessions()
        return JSONResponse({
            "sessions": [s.to_dict() for s in sessions.values()],
            "count": len(sessions),
        })

    @app.get("/api/sessions/{session_id}")
    async def get_session_detail(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return JSONResponse(session.to_dict(detail=True))

    # Demo runs in flight, and finished demos kept for inspection (oldest first)
    demo_tasks: set[asyncio.Task] = set()
    finished_demos: deque[str] = deque()
    app.state.demo_tasks = demo_tasks
    app.state.finished_demos = finished_demos

    def _retire_demo(sid: str) -> None:
        finished_demos.append(sid)
        while len(finished_demos) > settings.demo_keep:
            old = finished_demos.popleft()
            remove_tracer(old)
            unregister_session(old)
            log.info("Finished demo %s evicted", old)

    @app.post("/api/sessions/demo")
    async def create_demo_session(body: Optional[DemoRequest] = None) -> JSONResponse:
        """Run a scripted dialogue in the background for UI testing."""
        replies = body.replies if body and body.replies is not None else DEMO_REPLIES
        if len(replies) > 50:
            return JSONResponse({"error": "Too many replies (max 50)"}, status_code=400)

        port = ScriptedSpeechPort(replies)
        session = DialogueSession(port=port, machine=machine)
        sid = register_session(session)
        session.attach_tracer(get_tracer(sid))

        async def _run_demo() -> None:
            await session.start()
            try:
                await session.wait_for(DialogState.WAIT_TO_START, timeout=10)
                session.send(Start())
                # Script exhausted → the dialogue keeps re-asking; bound the demo
                await session.wait_for(*TERMINAL_STATES, timeout=120)
            except asyncio.TimeoutError:
                log.info("Demo %s stopped in %s", sid, session.state_label)
            finally:
                await session.stop()
                _retire_demo(sid)

        task = asyncio.create_task(_run_demo())
        demo_tasks.add(task)
        task.add_done_callback(demo_tasks.discard)
        return JSONResponse({"session_id": sid, "message": "Demo session created"})

    # ── Admin: debug controls ──────────────────────────────────

    @app.post("/api/sessions/{session_id}/pause", dependencies=[Depends(require_admin_token)])
    async def pause_session(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        session.pause()
        return JSONResponse({"paused": True})

    @app.post("/api/sessions/{session_id}/resume", dependencies=[Depends(require_admin_token)])
    async def resume_session(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        session.resume()
        return JSONResponse({"paused": False})

    @app.websocket("/api/sessions/{session_id}/debug")
    async def debug_stream(websocket: WebSocket, session_id: str, token: str = Query(default="")) -> None:
        """WebSocket endpoint that streams trace records live."""
        if not await require_admin_ws(websocket, token):
            return
        session = get_session(session_id)
        if not session:
            await websocket.close(code=4004, reason="Session not found")
            return

        await websocket.accept()
        tracer = get_tracer(session_id)
        session.attach_tracer(tracer)
        queue = tracer.subscribe()

        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            log.warning("Debug stream error for %s: %s", session_id, e)
        finally:
            tracer.unsubscribe(queue)

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "appointment_dm.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
