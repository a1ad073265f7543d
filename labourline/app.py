"""FastAPI application: Twilio IVR webhooks, admin API and dashboard stream.

Endpoints:

  POST /ivr/welcome             Incoming call: language menu
  POST /ivr/language            Language digit → purpose menu
  POST /ivr/purpose             Purpose digit → first question
  POST /ivr/record/{field}      Recording done → next question or goodbye
  POST /ivr/recording-status    Twilio recording status callback (logged)
  GET  /api/sessions            Active calls (admin)
  GET  /api/call-logs           Recent call outcomes (admin)
  WS   /ws/call-logs            Live call events for the dashboard (admin)
  GET  /health                  Health check

The call flow:
  1. Twilio posts to /ivr/welcome; we answer with a <Gather> for the language
  2. Each digit or finished <Record> posts back to the next /ivr endpoint
  3. After the last answer we queue the call for finalization and hang up
  4. A background worker transcribes, saves, matches and sends the SMS
"""

from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

# Configure root logger early so all labourline loggers have a handler
# when run via `uvicorn labourline.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse, Response

from labourline.auth import require_admin_token, require_admin_ws, verify_twilio_signature
from labourline.call_flow import CallFlow
from labourline.config import Settings, settings
from labourline.matching import MatchingEngine, MatchWeights
from labourline.notifications import LogOnlyNotifier, Notifier, TwilioSmsNotifier
from labourline.pipeline import FinalizationDispatcher, FinalizationPipeline
from labourline.session import SessionStore, redact_pii
from labourline.storage import InMemoryRepository, ProfileRepository, SqlRepository
from labourline.telemetry import TelemetryBroadcaster
from labourline.transcription import Transcriber, UnavailableTranscriber
from labourline.workflows import REGISTRATION_FLOW

log = logging.getLogger("labourline.app")

_START_TIME = time.time()


@dataclass
class Services:
    """Everything the endpoints need, wired once per app."""

    store: SessionStore
    telemetry: TelemetryBroadcaster
    repository: ProfileRepository
    pipeline: FinalizationPipeline
    dispatcher: FinalizationDispatcher
    flow: CallFlow


def _build_transcriber(cfg: Settings) -> Transcriber:
    if not cfg.google_service_account_json:
        log.warning("No Google credentials; answers will be stored as 'Unknown'")
        return UnavailableTranscriber()
    from labourline.transcription.google import GoogleSpeechTranscriber

    return GoogleSpeechTranscriber(
        service_account_path=cfg.google_service_account_json,
        twilio_account_sid=cfg.twilio_account_sid,
        twilio_auth_token=cfg.twilio_auth_token,
        locale=cfg.transcription_locale,
        timeout=cfg.transcription_timeout_seconds,
    )


def _build_notifier(cfg: Settings) -> Notifier:
    if not (cfg.twilio_account_sid and cfg.twilio_auth_token):
        log.warning("No Twilio credentials; SMS will be logged, not sent")
        return LogOnlyNotifier(max_matches=cfg.max_matches)
    return TwilioSmsNotifier(
        cfg.twilio_account_sid,
        cfg.twilio_auth_token,
        cfg.twilio_phone_number,
        max_matches=cfg.max_matches,
    )


def build_services(
    cfg: Settings,
    *,
    transcriber: Optional[Transcriber] = None,
    repository: Optional[ProfileRepository] = None,
    notifier: Optional[Notifier] = None,
) -> Services:
    """Wire the store, pipeline and call flow from settings.

    Collaborators can be passed in to replace the ones settings would pick.
    """
    store = SessionStore()
    telemetry = TelemetryBroadcaster()
    if repository is None:
        repository = SqlRepository(cfg.database_url) if cfg.database_url else InMemoryRepository()

    matcher = MatchingEngine(
        repository,
        MatchWeights(
            location=cfg.match_weight_location,
            experience=cfg.match_weight_experience,
            skill=cfg.match_weight_skill,
        ),
        max_matches=cfg.max_matches,
    )
    pipeline = FinalizationPipeline(
        store,
        transcriber or _build_transcriber(cfg),
        repository,
        matcher,
        notifier or _build_notifier(cfg),
        telemetry,
        timeout=cfg.pipeline_timeout_seconds,
    )
    dispatcher = FinalizationDispatcher(
        pipeline, workers=cfg.pipeline_workers, queue_size=cfg.pipeline_queue_size
    )
    flow = CallFlow(
        store,
        REGISTRATION_FLOW,
        dispatcher,
        telemetry,
        base_url=cfg.webhook_base_url,
        gather_timeout=cfg.gather_timeout_seconds,
        max_recording_seconds=cfg.max_recording_seconds,
    )
    return Services(store, telemetry, repository, pipeline, dispatcher, flow)


def _twiml(xml: str) -> Response:
    return Response(content=xml, media_type="application/xml")


def _field(form, name: str) -> Optional[str]:
    value = form.get(name)
    return value if isinstance(value, str) and value else None


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if services is None:
        for warning in settings.validate_startup():
            log.warning(warning)
        services = build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        services.dispatcher.start()
        yield
        await services.dispatcher.stop()
        services.repository.close()

    app = FastAPI(
        title="LabourLine",
        description="Voice registration and job matching over Twilio IVR",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    async def _call_sid(request: Request):
        form = await request.form()
        call_sid = _field(form, "CallSid")
        if not call_sid:
            raise HTTPException(status_code=400, detail="Missing CallSid")
        return call_sid, form

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "active_calls": len(services.store),
            "pending_finalizations": services.dispatcher.pending,
        })

    # ── IVR webhooks ───────────────────────────────────────────

    @app.post("/ivr/welcome", dependencies=[Depends(verify_twilio_signature)])
    async def ivr_welcome(request: Request) -> Response:
        call_sid, form = await _call_sid(request)
        caller = _field(form, "From") or ""
        log.info("Incoming call %s from %s", call_sid, redact_pii(caller))
        return _twiml(services.flow.call_started(call_sid, caller))

    @app.post("/ivr/language", dependencies=[Depends(verify_twilio_signature)])
    async def ivr_language(request: Request) -> Response:
        call_sid, form = await _call_sid(request)
        return _twiml(services.flow.language_selected(call_sid, _field(form, "Digits")))

    @app.post("/ivr/purpose", dependencies=[Depends(verify_twilio_signature)])
    async def ivr_purpose(request: Request) -> Response:
        call_sid, form = await _call_sid(request)
        return _twiml(services.flow.purpose_selected(call_sid, _field(form, "Digits")))

    @app.post("/ivr/record/{field}", dependencies=[Depends(verify_twilio_signature)])
    async def ivr_record(field: str, request: Request) -> Response:
        call_sid, form = await _call_sid(request)
        return _twiml(
            services.flow.recording_completed(call_sid, field, _field(form, "RecordingUrl"))
        )

    @app.post("/ivr/recording-status", dependencies=[Depends(verify_twilio_signature)])
    async def ivr_recording_status(request: Request) -> Response:
        form = await request.form()
        log.info(
            "Recording %s for %s: %s (%ss)",
            _field(form, "RecordingSid"),
            _field(form, "CallSid"),
            _field(form, "RecordingStatus"),
            _field(form, "RecordingDuration"),
        )
        return Response(status_code=204)

    # ── Admin API ──────────────────────────────────────────────

    @app.get("/api/sessions", dependencies=[Depends(require_admin_token)])
    async def list_sessions() -> JSONResponse:
        """Summary of every call still in the session store."""
        sessions = [
            {
                "call_id": s.call_id,
                "caller": redact_pii(s.caller_address),
                "language": s.language.value,
                "purpose": s.purpose.value if s.purpose else None,
                "state": s.state.value,
                "current_step": s.current_step,
                "current_field": s.current_field,
                "fields_collected": len(s.collected_fields),
                "elapsed_seconds": s.elapsed_seconds(),
            }
            for s in services.store.snapshot()
        ]
        return JSONResponse({"sessions": sessions, "count": len(sessions)})

    @app.get("/api/call-logs", dependencies=[Depends(require_admin_token)])
    async def list_call_logs(limit: int = Query(default=50, ge=1, le=500)) -> JSONResponse:
        entries = await services.repository.recent_calls(limit)
        return JSONResponse({
            "calls": [e.model_dump(mode="json") for e in entries],
            "count": len(entries),
        })

    # ── Dashboard stream WebSocket ─────────────────────────────

    @app.websocket("/ws/call-logs")
    async def call_log_stream(
        websocket: WebSocket, _auth: None = Depends(require_admin_ws)
    ) -> None:
        """Replay recent events, then stream new ones until the client leaves."""
        await websocket.accept()
        queue = services.telemetry.subscribe()

        async def pump() -> None:
            for event in services.telemetry.event_log:
                await websocket.send_json(event)
            while True:
                event = await queue.get()
                await websocket.send_json(event)

        sender = asyncio.create_task(pump())
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            sender.cancel()
            await asyncio.gather(sender, return_exceptions=True)
            services.telemetry.unsubscribe(queue)

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "labourline.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
