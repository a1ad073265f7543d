"""Pydantic models tracking one caller's state through the IVR."""

import time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Language(str, Enum):
    ENGLISH = "en"
    KANNADA = "kn"
    HINDI = "hi"


class Purpose(str, Enum):
    JOB_SEEKER = "job_seeker"
    EMPLOYER = "employer"


class CallState(str, Enum):
    AWAITING_LANGUAGE = "awaiting_language"
    AWAITING_PURPOSE = "awaiting_purpose"
    COLLECTING_FIELD = "collecting_field"
    FINALIZING = "finalizing"
    DONE = "done"
    EXPIRED = "expired"


class CallStatus(str, Enum):
    COMPLETED = "completed"
    DROPPED = "dropped"
    FAILED = "failed"


class CallSession(BaseModel):
    """Mutable session state for a single inbound call.

    Fields are populated progressively by the call flow as the caller
    answers each prompt. ``collected_fields`` holds raw recording URLs
    keyed by field name; transcription happens after the caller hangs up.
    """

    call_id: str
    caller_address: str = ""
    language: Language = Language.ENGLISH
    purpose: Optional[Purpose] = None

    state: CallState = CallState.AWAITING_LANGUAGE
    current_step: int = 1
    current_field: Optional[str] = None
    collected_fields: dict[str, str] = Field(default_factory=dict)

    started_at: float = Field(default_factory=time.monotonic)

    # Set once the finalization pipeline owns this session
    claimed: bool = False

    def elapsed_seconds(self, now: float | None = None) -> int:
        """Whole seconds since the first webhook for this call."""
        now = time.monotonic() if now is None else now
        return max(0, int(now - self.started_at))
