"""Abstract base class for speech-to-text adapters.

Any transcription backend (Google, Whisper, etc.) implements this ABC.
Callers must not assume the locale hint changes behaviour: adapters
transcribe in their one configured working locale, because callers
say trade and place names in that language even when the IVR prompts
were in Hindi or Kannada.
"""

from abc import ABC, abstractmethod
from typing import Optional


class TranscriptionUnavailable(Exception):
    """The adapter could not produce a transcript for this recording."""


class Transcriber(ABC):
    """Abstract speech-to-text backend."""

    @abstractmethod
    async def transcribe(
        self, audio_reference: str, locale_hint: str = ""
    ) -> Optional[str]:
        """Transcribe one recorded answer.

        Args:
            audio_reference: The provider's recording URL.
            locale_hint: The caller's IVR language. Informational only.

        Returns:
            The raw transcript, or None if nothing was recognised.

        Raises:
            TranscriptionUnavailable: download or recognition failed.
        """


class UnavailableTranscriber(Transcriber):
    """Used when no speech backend is configured: every answer is unavailable."""

    async def transcribe(
        self, audio_reference: str, locale_hint: str = ""
    ) -> Optional[str]:
        raise TranscriptionUnavailable("No transcription backend configured")
