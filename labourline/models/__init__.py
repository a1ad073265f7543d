"""Data models for the IVR and matching layers."""

from .call import CallSession, CallState, CallStatus, Language, Purpose
from .call_log import CallLogEntry
from .match import MatchCandidate, Side
from .profile import JobPosting, WorkerProfile

__all__ = [
    "CallLogEntry",
    "CallSession",
    "CallState",
    "CallStatus",
    "JobPosting",
    "Language",
    "MatchCandidate",
    "Purpose",
    "Side",
    "WorkerProfile",
]
