"""Google Cloud Speech-to-Text transcriber.

Downloads the caller's recording from Twilio (HTTP basic auth with the
account SID and auth token) and sends it to the Speech API v1
``speech.recognize`` method using a service account. Twilio phone
recordings are 8kHz LINEAR16 WAV.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
from functools import partial
from typing import Any, Optional

import httpx
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from .base import Transcriber, TranscriptionUnavailable

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]

TWILIO_SAMPLE_RATE = 8000
LOW_CONFIDENCE = 0.5


class GoogleSpeechTranscriber(Transcriber):
    """Transcriber backed by Google Cloud Speech-to-Text v1."""

    def __init__(
        self,
        service_account_path: str | None = None,
        twilio_account_sid: str = "",
        twilio_auth_token: str = "",
        locale: str = "en-IN",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        sa_path = service_account_path or os.environ.get(
            "GOOGLE_SERVICE_ACCOUNT_JSON", ""
        )
        if not sa_path:
            raise ValueError(
                "Google service account JSON path must be provided via "
                "constructor argument or GOOGLE_SERVICE_ACCOUNT_JSON env var."
            )
        self._credentials = Credentials.from_service_account_file(
            sa_path, scopes=SCOPES
        )
        self._service = build(
            "speech", "v1", credentials=self._credentials, cache_discovery=False
        )
        self._auth = (twilio_account_sid, twilio_auth_token)
        self._locale = locale
        self._timeout = timeout
        self._http_client = http_client

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Google API call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(func, *args, **kwargs)
        )

    async def _download(self, url: str) -> bytes:
        """Fetch the recording as WAV from Twilio."""
        if not all(self._auth):
            raise TranscriptionUnavailable("Twilio credentials not configured")

        wav_url = url if url.endswith(".wav") else f"{url}.wav"
        client = self._http_client or httpx.AsyncClient(timeout=self._timeout)
        try:
            resp = await client.get(
                wav_url, auth=self._auth, headers={"Accept": "audio/wav"}
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 401:
                logger.error(
                    "Twilio rejected the recording download; check that "
                    "TWILIO_ACCOUNT_SID owns the recording"
                )
            raise TranscriptionUnavailable(
                f"Recording download failed: HTTP {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TranscriptionUnavailable(f"Recording download failed: {e}") from e
        finally:
            if self._http_client is None:
                await client.aclose()

        logger.info("Downloaded %d bytes of audio", len(resp.content))
        return resp.content

    # ------------------------------------------------------------------
    # Transcriber interface
    # ------------------------------------------------------------------

    async def transcribe(
        self, audio_reference: str, locale_hint: str = ""
    ) -> Optional[str]:
        """Download and recognise one answer, always in the configured locale."""
        audio = await self._download(audio_reference)

        body = {
            "config": {
                "encoding": "LINEAR16",
                "sampleRateHertz": TWILIO_SAMPLE_RATE,
                "languageCode": self._locale,
                "enableAutomaticPunctuation": True,
                "model": "default",
            },
            "audio": {"content": base64.b64encode(audio).decode("ascii")},
        }

        try:
            response = await self._run_in_executor(
                self._service.speech().recognize(body=body).execute
            )
        except Exception as e:
            logger.exception("Speech-to-Text request failed")
            raise TranscriptionUnavailable("Speech-to-Text request failed") from e

        results = response.get("results", [])
        if not results or not results[0].get("alternatives"):
            logger.warning("No transcription results returned (%s)", self._locale)
            return None

        best = results[0]["alternatives"][0]
        transcript = best.get("transcript", "")
        confidence = float(best.get("confidence", 0.0))
        if confidence < LOW_CONFIDENCE:
            logger.warning(
                "Low confidence transcription (%.2f): '%s'", confidence, transcript
            )
        else:
            logger.info("Transcribed (%s): '%s' (%.2f)", self._locale, transcript, confidence)
        return transcript
