"""IVR state machine driven by Twilio webhooks.

Each webhook is one event for one call. ``CallFlow.handle`` looks the
call's session up, finds the (state, event) entry in ``TRANSITIONS``,
applies it to the session under the store lock, and returns the TwiML
for whatever the caller should hear next.

    AWAITING_LANGUAGE --digit--> AWAITING_PURPOSE --digit--> COLLECTING_FIELD
    COLLECTING_FIELD --recording--> COLLECTING_FIELD (next field)
                                  | FINALIZING (last field: dispatch, thank, hang up)

An event with no table entry for the session's current state (Twilio
retries, a stale redirect) replays the current prompt and changes
nothing. A call with no session gets the expired message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from labourline import twiml
from labourline.models.call import CallSession, CallState
from labourline.session import SessionExpired, SessionStore, redact_pii
from labourline.telemetry import INFO, SUCCESS, TelemetryBroadcaster
from labourline.workflows.schema import RegistrationFlowDef

log = logging.getLogger("labourline.call_flow")

# current_step: 1 is the language menu (CallSession default), 2 purpose, 3.. fields
PURPOSE_STEP = 2
FIRST_FIELD_STEP = 3


class FlowEvent(str, Enum):
    CALL_START = "call_start"
    LANGUAGE_DIGITS = "language_digits"
    PURPOSE_DIGITS = "purpose_digits"
    RECORDING_COMPLETED = "recording_completed"


class Dispatcher(Protocol):
    def dispatch(self, call_id: str) -> bool: ...


class OutOfSequence(Exception):
    """The event doesn't apply to the session as it stands."""


@dataclass(frozen=True)
class Transition:
    """Mutates the live session; must raise before changing anything if it can't apply."""

    apply: Callable[..., None]
    targets: tuple[CallState, ...]


class CallFlow:
    def __init__(
        self,
        store: SessionStore,
        flow: RegistrationFlowDef,
        dispatcher: Dispatcher,
        telemetry: TelemetryBroadcaster,
        base_url: str,
        gather_timeout: int = 5,
        max_recording_seconds: int = 30,
    ) -> None:
        self._store = store
        self._flow = flow
        self._dispatcher = dispatcher
        self._telemetry = telemetry
        self._base_url = base_url.rstrip("/")
        self._gather_timeout = gather_timeout
        self._max_recording_seconds = max_recording_seconds

    # ── Webhook entry points ──────────────────────────────────

    def call_started(self, call_id: str, caller_address: str) -> str:
        return self.handle(call_id, FlowEvent.CALL_START, caller_address=caller_address)

    def language_selected(self, call_id: str, digits: Optional[str]) -> str:
        return self.handle(call_id, FlowEvent.LANGUAGE_DIGITS, digits=digits)

    def purpose_selected(self, call_id: str, digits: Optional[str]) -> str:
        return self.handle(call_id, FlowEvent.PURPOSE_DIGITS, digits=digits)

    def recording_completed(
        self, call_id: str, field: str, recording_url: Optional[str]
    ) -> str:
        return self.handle(
            call_id, FlowEvent.RECORDING_COMPLETED, field=field, recording_url=recording_url
        )

    def handle(self, call_id: str, event: FlowEvent, **params: Any) -> str:
        """Apply ``event`` to the call and return the TwiML response."""
        if event is FlowEvent.CALL_START:
            return self._start(call_id, params.get("caller_address") or "")

        previous: dict[str, CallState] = {}

        def step(session: CallSession) -> None:
            transition = TRANSITIONS.get((session.state, event))
            if transition is None:
                raise OutOfSequence(f"{event.value} while {session.state.value}")
            previous["state"] = session.state
            transition.apply(self, session, **params)

        try:
            session = self._store.mutate(call_id, step)
        except SessionExpired:
            return self._expired(call_id, event)
        except OutOfSequence as e:
            current = self._store.get(call_id)
            if current is None:
                return self._expired(call_id, event)
            log.warning("Call %s: ignoring %s; replaying prompt", call_id, e)
            return self._prompt_for(current)

        log.info(
            "Call %s: %s -> %s (%s)",
            call_id, previous["state"].value, session.state.value, event.value,
        )
        self._announce(session, event)

        if session.state is CallState.FINALIZING:
            self._dispatcher.dispatch(call_id)
        return self._prompt_for(session)

    # ── Transition actions (run under the store lock) ─────────

    def _choose_language(self, session: CallSession, digits: Optional[str] = None) -> None:
        session.language = self._flow.language_for(digits)
        session.state = CallState.AWAITING_PURPOSE
        session.current_step = PURPOSE_STEP

    def _choose_purpose(self, session: CallSession, digits: Optional[str] = None) -> None:
        session.purpose = self._flow.purpose_for(digits)
        session.state = CallState.COLLECTING_FIELD
        session.current_field = self._flow.first_field(session.purpose).name
        session.current_step = FIRST_FIELD_STEP

    def _store_recording(
        self,
        session: CallSession,
        field: Optional[str] = None,
        recording_url: Optional[str] = None,
    ) -> None:
        if field != session.current_field:
            raise OutOfSequence(f"recording for {field} while collecting {session.current_field}")

        session.collected_fields[field] = recording_url or ""
        nxt = self._flow.next_field(session.purpose, field)
        if nxt is None:
            session.state = CallState.FINALIZING
            session.current_field = None
        else:
            session.current_field = nxt.name
        session.current_step += 1

    # ── Responses ─────────────────────────────────────────────

    def _start(self, call_id: str, caller_address: str) -> str:
        session = self._store.create(call_id, caller_address)
        self._telemetry.publish(
            call_id, "CALL_START", f"Incoming call from {redact_pii(caller_address)}", INFO,
        )
        return self._prompt_for(session)

    def _expired(self, call_id: str, event: FlowEvent) -> str:
        log.warning("Call %s: no session for %s -> %s", call_id, event.value, CallState.EXPIRED.value)
        return twiml.say_and_hangup(self._flow.expired_message(), self._flow.default_language)

    def _audio(self, session: CallSession, key: str) -> str:
        return twiml.audio_url(self._base_url, key, session.language)

    def _prompt_for(self, session: CallSession) -> str:
        """TwiML for the step the session is currently on."""
        if session.state is CallState.AWAITING_LANGUAGE:
            return twiml.gather_digit(
                self._audio(session, self._flow.welcome_key),
                f"{self._base_url}/ivr/language",
                self._gather_timeout,
            )
        if session.state is CallState.AWAITING_PURPOSE:
            return twiml.gather_digit(
                self._audio(session, self._flow.purpose_prompt_key),
                f"{self._base_url}/ivr/purpose",
                self._gather_timeout,
            )
        if session.state is CallState.COLLECTING_FIELD:
            step = self._flow.get_field(session.purpose, session.current_field)
            return twiml.record_answer(
                self._audio(session, step.prompt_key),
                f"{self._base_url}/ivr/record/{step.name}",
                max_length=self._max_recording_seconds,
                timeout=self._gather_timeout,
                status_callback=f"{self._base_url}/ivr/recording-status",
            )
        purpose = session.purpose or self._flow.default_purpose
        return twiml.play_and_hangup(
            self._audio(session, self._flow.purposes[purpose].completion_key)
        )

    def _announce(self, session: CallSession, event: FlowEvent) -> None:
        call_id = session.call_id
        if event is FlowEvent.LANGUAGE_DIGITS:
            self._telemetry.publish(
                call_id, "LANGUAGE_SELECT", f"Language: {session.language.value}", INFO,
                language=session.language.value,
            )
        elif event is FlowEvent.PURPOSE_DIGITS:
            self._telemetry.publish(
                call_id, "PURPOSE_SELECT", f"Purpose: {session.purpose.value}", INFO,
                purpose=session.purpose.value,
            )
        elif event is FlowEvent.RECORDING_COMPLETED:
            self._telemetry.publish(
                call_id, "RECORDING_STORED",
                f"Recorded {len(session.collected_fields)} answer(s)",
                SUCCESS if session.state is CallState.FINALIZING else INFO,
                fields=list(session.collected_fields),
            )


TRANSITIONS: dict[tuple[CallState, FlowEvent], Transition] = {
    (CallState.AWAITING_LANGUAGE, FlowEvent.LANGUAGE_DIGITS): Transition(
        CallFlow._choose_language, (CallState.AWAITING_PURPOSE,)
    ),
    (CallState.AWAITING_PURPOSE, FlowEvent.PURPOSE_DIGITS): Transition(
        CallFlow._choose_purpose, (CallState.COLLECTING_FIELD,)
    ),
    (CallState.COLLECTING_FIELD, FlowEvent.RECORDING_COMPLETED): Transition(
        CallFlow._store_recording, (CallState.COLLECTING_FIELD, CallState.FINALIZING)
    ),
}
