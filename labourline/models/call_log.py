"""Persisted outcome of one call, written once at the end of finalization."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from .call import CallStatus, Language, Purpose


class CallLogEntry(BaseModel):
    id: Optional[int] = None
    caller_address: str
    purpose: Optional[Purpose] = None
    language: Language = Language.ENGLISH
    duration_seconds: int = Field(default=0, ge=0)
    status: CallStatus = CallStatus.COMPLETED
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
