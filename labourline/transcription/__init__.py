"""Speech-to-text adapters and transcript clean-up."""

from .base import Transcriber, TranscriptionUnavailable, UnavailableTranscriber
from .text import UNKNOWN, clean_transcription, is_valid_transcription, normalise_answer

__all__ = [
    "Transcriber",
    "TranscriptionUnavailable",
    "UNKNOWN",
    "UnavailableTranscriber",
    "clean_transcription",
    "is_valid_transcription",
    "normalise_answer",
]
