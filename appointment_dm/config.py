"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

from appointment_dm.machine.actions import Timings
from appointment_dm.machine.dialogue import RetryPolicy

log = logging.getLogger("appointment_dm.config")


class Settings(BaseSettings):
    # Dialogue timing (milliseconds)
    speak_timeout_ms: int = 5000
    listen_start_delay_ms: int = 1000
    listen_timeout_ms: int = 6000
    inter_prompt_delay_ms: int = 500

    # Re-ask bound per slot; 0 re-asks forever
    max_attempts: int = 0

    # Vocabulary; empty uses the packaged lexicon
    lexicon_path: str = ""

    # Forwarded to browser speech clients
    locale: str = "en-US"
    tts_voice: str = "en-US-DavisNeural"
    no_input_timeout_ms: int = 5000

    # Finished demo sessions kept for inspection before the oldest is dropped
    demo_keep: int = 20

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def timings(self) -> Timings:
        return Timings(
            speak_timeout_ms=self.speak_timeout_ms,
            listen_start_delay_ms=self.listen_start_delay_ms,
            listen_timeout_ms=self.listen_timeout_ms,
            inter_prompt_delay_ms=self.inter_prompt_delay_ms,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_attempts=self.max_attempts or None)

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        for name in ("speak_timeout_ms", "listen_timeout_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be positive.")
        for name in ("listen_start_delay_ms", "inter_prompt_delay_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name.upper()} must not be negative.")
        if self.max_attempts < 0:
            raise ValueError("MAX_ATTEMPTS must be 0 (unbounded) or a positive count.")
        if self.demo_keep < 0:
            raise ValueError("DEMO_KEEP must not be negative.")

        # The engine's own no-input timer should fire before ours does
        if self.no_input_timeout_ms >= self.listen_timeout_ms:
            warnings.append(
                "NO_INPUT_TIMEOUT_MS >= LISTEN_TIMEOUT_MS: the dialogue will time out "
                "before the speech engine reports no input."
            )

        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        return warnings


settings = Settings()
