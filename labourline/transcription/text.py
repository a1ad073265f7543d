"""Validity filtering and normalisation of raw transcripts."""

from __future__ import annotations

import re
from typing import Optional

# Stored in place of any answer we couldn't transcribe
UNKNOWN = "Unknown"

_WHITESPACE = re.compile(r"\s+")


def is_valid_transcription(transcript: Optional[str]) -> bool:
    """Reject empty and near-empty results (fewer than two characters)."""
    if transcript is None:
        return False
    return len(transcript.strip()) >= 2


def clean_transcription(transcript: str) -> str:
    """Trim, collapse internal whitespace, and capitalise the first letter."""
    cleaned = _WHITESPACE.sub(" ", transcript.strip())
    if cleaned:
        cleaned = cleaned[0].upper() + cleaned[1:]
    return cleaned


def normalise_answer(transcript: Optional[str]) -> str:
    """Clean value for a field, or UNKNOWN if the transcript is unusable."""
    if not is_valid_transcription(transcript):
        return UNKNOWN
    return clean_transcription(transcript)
