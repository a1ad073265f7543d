"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("labourline.config")


class Settings(BaseSettings):
    # Twilio
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_phone_number: str = ""
    twilio_validate_signature: bool = True
    webhook_base_url: str = "http://localhost:8080"

    # Call flow
    gather_timeout_seconds: int = 5
    max_recording_seconds: int = 30
    default_language: str = "en"

    # Google Speech-to-Text
    google_service_account_json: str = ""
    transcription_locale: str = "en-IN"
    transcription_timeout_seconds: float = 30.0

    # Matching
    match_weight_location: float = 0.4
    match_weight_experience: float = 0.3
    match_weight_skill: float = 0.3
    max_matches: int = 2

    # Persistence (empty = in-memory)
    database_url: str = ""

    # Finalization pipeline
    pipeline_workers: int = 4
    pipeline_queue_size: int = 100
    pipeline_timeout_seconds: float = 120.0

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Check settings before serving calls.

        Raises ValueError for values the pipeline cannot run with; returns
        human-readable warnings for degraded but workable setups.
        """
        warnings: list[str] = []
        _placeholders = {"AC...", "path/to/service-account.json"}

        if self.max_matches < 1:
            raise ValueError("MAX_MATCHES must be at least 1.")
        if self.pipeline_workers < 1 or self.pipeline_queue_size < 1:
            raise ValueError("PIPELINE_WORKERS and PIPELINE_QUEUE_SIZE must be positive.")

        if not self.twilio_account_sid or self.twilio_account_sid in _placeholders:
            warnings.append(
                "TWILIO_ACCOUNT_SID not set. SMS is logged only and recordings can't be downloaded."
            )

        if not self.google_service_account_json or self.google_service_account_json in _placeholders:
            warnings.append(
                "GOOGLE_SERVICE_ACCOUNT_JSON not set. Every answer will be stored as 'Unknown'."
            )

        total = self.match_weight_location + self.match_weight_experience + self.match_weight_skill
        if abs(total - 1.0) > 1e-6:
            warnings.append(
                f"Match weights sum to {total:.2f}, not 1.0. Scores are still capped at 100."
            )

        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY empty with DEBUG on: operator API and dashboard are unauthenticated."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY empty: /api/* and /ws/call-logs will refuse every request."
                )

        return warnings


settings = Settings()
