"""Shared fakes and fixtures."""

import os
import sys
from typing import Optional, Union

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from labourline.models.call import Language
from labourline.models.match import MatchCandidate, Side
from labourline.notifications.base import Notifier
from labourline.session import SessionStore
from labourline.storage.memory import InMemoryRepository
from labourline.telemetry import TelemetryBroadcaster
from labourline.transcription.base import Transcriber


class ScriptedTranscriber(Transcriber):
    """Returns canned transcripts keyed by recording URL.

    A value that is an exception instance is raised instead.
    """

    def __init__(self, answers: Optional[dict[str, Union[str, None, Exception]]] = None):
        self.answers = answers or {}
        self.calls: list[tuple[str, str]] = []

    async def transcribe(self, audio_reference, locale_hint=""):
        self.calls.append((audio_reference, locale_hint))
        value = self.answers.get(audio_reference)
        if isinstance(value, Exception):
            raise value
        return value


class RecordingNotifier(Notifier):
    def __init__(self, result: bool = True):
        self.result = result
        self.sent: list[dict] = []

    async def send(self, destination, candidates: list[MatchCandidate], language: Language, side: Side):
        self.sent.append({
            "destination": destination,
            "candidates": candidates,
            "language": language,
            "side": side,
        })
        return self.result


class FakeDispatcher:
    def __init__(self, accept: bool = True):
        self.accept = accept
        self.calls: list[str] = []

    def dispatch(self, call_id: str) -> bool:
        self.calls.append(call_id)
        return self.accept


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def telemetry():
    return TelemetryBroadcaster()


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def transcriber():
    return ScriptedTranscriber()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()
