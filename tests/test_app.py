"""End-to-end tests of the FastAPI webhooks with fake Twilio and Google."""

from xml.etree.ElementTree import fromstring

import pytest
from fastapi.testclient import TestClient

from labourline.app import build_services, create_app
from labourline.config import Settings
from labourline.models.call import CallStatus, Language, Purpose
from labourline.models.call_log import CallLogEntry
from labourline.models.match import Side
from labourline.models.profile import WorkerProfile

BASE = "https://ivr.example.com"
CALLER = "+919800000001"
REC = "https://api.twilio.com/2010-04-01/Accounts/AC1/Recordings/"


class FakeSettings:
    def __init__(self, admin_api_key="", debug=True):
        self.admin_api_key = admin_api_key
        self.debug = debug
        self.twilio_auth_token = ""
        self.twilio_validate_signature = False
        self.webhook_base_url = BASE


@pytest.fixture
def services(transcriber, repository, notifier):
    transcriber.answers = {REC + "RE1": "painter", REC + "RE2": "mysore"}
    cfg = Settings(
        _env_file=None,
        webhook_base_url=BASE,
        twilio_auth_token="",
        database_url="",
        pipeline_workers=2,
        pipeline_timeout_seconds=5.0,
    )
    return build_services(
        cfg,
        transcriber=transcriber,
        repository=repository,
        notifier=notifier,
    )


@pytest.fixture
def open_admin(monkeypatch):
    monkeypatch.setattr("labourline.auth.settings", FakeSettings())


def _root(resp):
    text = resp.text
    return fromstring(text.split("?>", 1)[1] if text.startswith("<?xml") else text)


def _employer_call(client, call_sid="CA1"):
    client.post("/ivr/welcome", data={"CallSid": call_sid, "From": CALLER})
    client.post("/ivr/language", data={"CallSid": call_sid, "Digits": "3"})
    client.post("/ivr/purpose", data={"CallSid": call_sid, "Digits": "2"})
    client.post("/ivr/record/type_of_work", data={"CallSid": call_sid, "RecordingUrl": REC + "RE1"})
    return client.post("/ivr/record/location", data={"CallSid": call_sid, "RecordingUrl": REC + "RE2"})


# ── Webhooks ───────────────────────────────────────────────────────


class TestWebhooks:
    def test_welcome_returns_language_menu(self, services, open_admin):
        with TestClient(create_app(services)) as client:
            resp = client.post("/ivr/welcome", data={"CallSid": "CA1", "From": CALLER})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/xml")
        gather = _root(resp).find("Gather")
        assert gather.get("action") == f"{BASE}/ivr/language"

    def test_missing_call_sid_is_400(self, services, open_admin):
        with TestClient(create_app(services)) as client:
            resp = client.post("/ivr/welcome", data={"From": CALLER})
        assert resp.status_code == 400

    def test_unknown_call_gets_expired_message(self, services, open_admin):
        with TestClient(create_app(services)) as client:
            resp = client.post("/ivr/language", data={"CallSid": "CA404", "Digits": "1"})

        root = _root(resp)
        assert root.find("Say").text == "Session expired. Please call again."
        assert root.find("Hangup") is not None

    def test_recording_status_is_acknowledged(self, services, open_admin):
        with TestClient(create_app(services)) as client:
            resp = client.post("/ivr/recording-status", data={
                "CallSid": "CA1", "RecordingSid": "RE1", "RecordingStatus": "completed",
            })
        assert resp.status_code == 204

    def test_last_answer_plays_completion_and_hangs_up(self, services, open_admin):
        with TestClient(create_app(services)) as client:
            resp = _employer_call(client)

        root = _root(resp)
        assert root.find("Play").text == f"{BASE}/Audio/hi/completion_employer.mp3"
        assert root.find("Hangup") is not None


# ── Full registration ──────────────────────────────────────────────


class TestEmployerRegistration:
    def test_job_saved_matched_and_notified(self, services, open_admin):
        repo = services.repository
        repo.workers.append(WorkerProfile(
            id=99, caller_address="+919800000050", name="Raju",
            skill="Painter", location="Mysore",
        ))

        with TestClient(create_app(services)) as client:
            _employer_call(client)
        # Lifespan shutdown drains the finalization queue

        assert len(repo.jobs) == 1
        job = repo.jobs[0]
        assert (job.type_of_work, job.location) == ("Painter", "Mysore")
        assert job.language == Language.HINDI

        notifier = services.pipeline._notifier
        assert len(notifier.sent) == 1
        sent = notifier.sent[0]
        assert sent["destination"] == CALLER
        assert sent["side"] == Side.WORKERS
        assert [c.contact_address for c in sent["candidates"]] == ["+919800000050"]

        assert [c.status for c in repo.calls] == [CallStatus.COMPLETED]
        assert repo.calls[0].purpose == Purpose.EMPLOYER
        assert "CA1" not in services.store

    def test_shutdown_closes_repository_after_draining(self, services, open_admin, monkeypatch):
        repo = services.repository
        saved_at_close = []
        monkeypatch.setattr(repo, "close", lambda: saved_at_close.append(len(repo.jobs)))

        with TestClient(create_app(services)) as client:
            _employer_call(client)
            assert saved_at_close == []

        assert saved_at_close == [1]

    def test_telemetry_trail(self, services, open_admin):
        with TestClient(create_app(services)) as client:
            _employer_call(client)

        types = [e["type"] for e in services.telemetry.events_for("CA1")]
        assert types[:5] == [
            "CALL_START", "LANGUAGE_SELECT", "PURPOSE_SELECT",
            "RECORDING_STORED", "RECORDING_STORED",
        ]
        assert types[-1] == "CALL_COMPLETE"


# ── Admin API ──────────────────────────────────────────────────────


class TestAdmin:
    def test_health(self, services, open_admin):
        with TestClient(create_app(services)) as client:
            client.post("/ivr/welcome", data={"CallSid": "CA1", "From": CALLER})
            body = client.get("/health").json()

        assert body["status"] == "ok"
        assert body["active_calls"] == 1
        assert body["pending_finalizations"] == 0

    def test_sessions_require_token(self, services, monkeypatch):
        monkeypatch.setattr("labourline.auth.settings", FakeSettings(admin_api_key="secret"))
        with TestClient(create_app(services)) as client:
            assert client.get("/api/sessions").status_code == 401
            resp = client.get("/api/sessions", headers={"Authorization": "Bearer secret"})
        assert resp.status_code == 200

    def test_sessions_are_redacted(self, services, open_admin):
        with TestClient(create_app(services)) as client:
            client.post("/ivr/welcome", data={"CallSid": "CA1", "From": CALLER})
            client.post("/ivr/language", data={"CallSid": "CA1", "Digits": "2"})
            body = client.get("/api/sessions").json()

        assert body["count"] == 1
        session = body["sessions"][0]
        assert session["caller"] == "+91***01"
        assert session["language"] == "kn"
        assert session["state"] == "awaiting_purpose"

    def test_call_logs_listed(self, services, open_admin):
        services.repository.calls.append(CallLogEntry(
            id=1, caller_address=CALLER, purpose=Purpose.EMPLOYER, status=CallStatus.COMPLETED,
        ))
        with TestClient(create_app(services)) as client:
            body = client.get("/api/call-logs", params={"limit": 5}).json()

        assert body["count"] == 1
        assert body["calls"][0]["status"] == "completed"
        assert body["calls"][0]["purpose"] == "employer"

    def test_ws_replays_recent_events(self, services, open_admin):
        services.telemetry.publish("CA9", "CALL_START", "Incoming call")
        with TestClient(create_app(services)) as client:
            with client.websocket_connect("/ws/call-logs") as ws:
                event = ws.receive_json()

        assert event["call_id"] == "CA9"
        assert event["type"] == "CALL_START"
