"""Transient match results handed from the matching engine to notifications."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Side(str, Enum):
    """Which population a search runs over."""

    WORKERS = "workers"
    JOBS = "jobs"


class MatchCandidate(BaseModel):
    """One scored candidate. Never persisted."""

    side: Side
    profile_id: Optional[int] = None
    score: float = Field(ge=0.0, le=100.0)

    # Display / contact fields
    contact_address: str
    skill: Optional[str] = None
    location: Optional[str] = None
    name: Optional[str] = None              # workers only
    experience_years: Optional[int] = None  # workers only
    wage: Optional[int] = None              # offered (jobs) or preferred (workers)
    organisation: Optional[str] = None      # jobs only
