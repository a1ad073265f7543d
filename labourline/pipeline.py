"""Background finalization of a completed registration call.

Once the caller has answered the last question the call flow hands the
call id to ``FinalizationDispatcher.dispatch`` and hangs up. A worker
then runs ``FinalizationPipeline.run``:

  1. transcribe every recorded answer ("Unknown" where that fails)
  2. save a WorkerProfile or JobPosting
  3. match it against the other side
  4. SMS the results (or the no-match text) to the caller
  5. write the call log
  6. release the session

Steps 1-5 share one failure boundary. Whatever goes wrong, including
the run exceeding its time limit, is published as an ERROR event, a
``failed`` call log is attempted, and the session is released. Nothing
is retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Optional

from labourline.matching import MatchingEngine
from labourline.models.call import CallSession, CallState, CallStatus, Purpose
from labourline.models.call_log import CallLogEntry
from labourline.models.match import MatchCandidate, Side
from labourline.models.profile import JobPosting, WorkerProfile
from labourline.notifications.base import Notifier
from labourline.session import SessionExpired, SessionStore, redact_pii
from labourline.storage.base import ProfileRepository
from labourline.telemetry import ERROR, INFO, SUCCESS, WARNING, TelemetryBroadcaster
from labourline.transcription.base import Transcriber, TranscriptionUnavailable
from labourline.transcription.text import UNKNOWN, normalise_answer

log = logging.getLogger("labourline.pipeline")


class PipelineFailure(Exception):
    """A finalization run stopped at ``stage``; the cause is chained."""

    def __init__(self, call_id: str, stage: str) -> None:
        super().__init__(f"Finalization of {call_id} failed during {stage}")
        self.call_id = call_id
        self.stage = stage


def _known(value: Optional[str]) -> Optional[str]:
    return None if not value or value == UNKNOWN else value


class FinalizationPipeline:
    def __init__(
        self,
        store: SessionStore,
        transcriber: Transcriber,
        repository: ProfileRepository,
        matcher: MatchingEngine,
        notifier: Notifier,
        telemetry: TelemetryBroadcaster,
        timeout: float = 120.0,
    ) -> None:
        self._store = store
        self._transcriber = transcriber
        self._repository = repository
        self._matcher = matcher
        self._notifier = notifier
        self._telemetry = telemetry
        self._timeout = timeout

    # ── Entry points ──────────────────────────────────────────

    async def run(self, call_id: str) -> Optional[CallStatus]:
        """Finalize one call. Never raises.

        Returns the status written to the call log, or None when there was
        no unclaimed session (already finalized, rejected, or expired).
        """
        session = self._store.claim(call_id)
        if session is None:
            log.info("Nothing to finalize for %s", call_id)
            return None

        log.info(
            "Finalizing %s (%s, %s) from %s",
            call_id,
            session.purpose.value if session.purpose else "?",
            session.language.value,
            redact_pii(session.caller_address),
        )
        try:
            await asyncio.wait_for(self._finalize(session), timeout=self._timeout)
            self._mark_done(call_id)
            return CallStatus.COMPLETED
        except asyncio.TimeoutError:
            failure = PipelineFailure(call_id, "timeout")
            log.error("Finalization of %s exceeded %.0fs", call_id, self._timeout)
        except PipelineFailure as e:
            failure = e
            log.error("%s: %s", e, e.__cause__, exc_info=e.__cause__)
        except Exception as e:
            failure = PipelineFailure(call_id, "finalization")
            failure.__cause__ = e
            log.exception("Unexpected error finalizing %s", call_id)
        finally:
            self._store.remove(call_id)

        self._telemetry.publish(
            call_id, "ERROR", str(failure), ERROR,
            stage=failure.stage,
            error=repr(failure.__cause__) if failure.__cause__ else None,
        )
        await self.record_outcome(session, CallStatus.FAILED)
        return CallStatus.FAILED

    def reject(self, call_id: str) -> Optional[CallSession]:
        """Release a session that could not be queued for finalization."""
        session = self._store.claim(call_id)
        if session is None:
            return None
        self._store.remove(call_id)
        self._telemetry.publish(
            call_id, "ERROR", "Finalization queue full; registration dropped", ERROR,
            stage="dispatch",
        )
        return session

    async def record_outcome(self, session: CallSession, status: CallStatus) -> bool:
        """Best-effort call log for a run that did not complete normally."""
        try:
            await self._repository.record_call(self._call_log(session, status))
        except Exception:
            log.exception("Could not write %s call log for %s", status.value, session.call_id)
            return False
        return True

    # ── Steps ─────────────────────────────────────────────────

    async def _step(self, call_id: str, stage: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await awaitable
        except Exception as e:
            raise PipelineFailure(call_id, stage) from e

    async def _finalize(self, session: CallSession) -> None:
        call_id = session.call_id

        answers = await self._step(call_id, "transcription", self._transcribe_all(session))
        self._telemetry.publish(
            call_id, "DATA_COLLECTED", "Answers transcribed", SUCCESS, fields=answers,
        )

        profile = await self._step(call_id, "persistence", self._save_profile(session, answers))
        self._telemetry.publish(
            call_id, "DB_SAVE", f"Saved {type(profile).__name__} {profile.id}", SUCCESS,
            profile_id=profile.id,
        )

        matches, side = await self._step(call_id, "matching", self._match(session, profile))
        self._telemetry.publish(
            call_id, "MATCHING", f"{len(matches)} {side.value} matched", INFO,
            scores=[m.score for m in matches],
        )

        sent = await self._step(
            call_id, "notification",
            self._notifier.send(session.caller_address, matches, session.language, side),
        )
        if sent:
            self._telemetry.publish(call_id, "SMS_SENT", "Match SMS sent", SUCCESS)
        else:
            self._telemetry.publish(call_id, "SMS_FAILED", "Match SMS not delivered", WARNING)

        entry = self._call_log(session, CallStatus.COMPLETED)
        await self._step(call_id, "call log", self._repository.record_call(entry))
        self._telemetry.publish(
            call_id, "CALL_COMPLETE", "Registration complete", SUCCESS,
            duration_seconds=entry.duration_seconds,
        )

    async def _transcribe_all(self, session: CallSession) -> dict[str, str]:
        answers: dict[str, str] = {}
        for field, reference in session.collected_fields.items():
            answers[field] = await self._transcribe(session, field, reference)
        return answers

    async def _transcribe(self, session: CallSession, field: str, reference: str) -> str:
        if not reference:
            log.info("%s: no recording for %s", session.call_id, field)
            return UNKNOWN
        try:
            text = await self._transcriber.transcribe(reference, session.language.value)
        except TranscriptionUnavailable as e:
            log.warning("%s: transcription of %s unavailable: %s", session.call_id, field, e)
            return UNKNOWN
        except Exception:
            log.exception("%s: transcriber crashed on %s", session.call_id, field)
            return UNKNOWN
        value = normalise_answer(text)
        log.info("%s: %s = '%s'", session.call_id, field, value)
        return value

    async def _save_profile(
        self, session: CallSession, answers: dict[str, str]
    ) -> WorkerProfile | JobPosting:
        if session.purpose is Purpose.EMPLOYER:
            return await self._repository.save_job(
                JobPosting(
                    caller_address=session.caller_address,
                    type_of_work=answers.get("type_of_work", UNKNOWN),
                    location=answers.get("location", UNKNOWN),
                    language=session.language,
                )
            )
        return await self._repository.save_worker(
            WorkerProfile(
                caller_address=session.caller_address,
                name=answers.get("name", UNKNOWN),
                skill=answers.get("work_expertise", UNKNOWN),
                location=answers.get("location", UNKNOWN),
                language=session.language,
            )
        )

    async def _match(
        self, session: CallSession, profile: WorkerProfile | JobPosting
    ) -> tuple[list[MatchCandidate], Side]:
        if isinstance(profile, JobPosting):
            side, wage = Side.WORKERS, profile.wage_offered
        else:
            side, wage = Side.JOBS, profile.preferred_wage
        matches = await self._matcher.find_matches(
            _known(profile.skill), _known(profile.location), wage, side
        )
        return matches, side

    # ── Helpers ───────────────────────────────────────────────

    def _call_log(self, session: CallSession, status: CallStatus) -> CallLogEntry:
        return CallLogEntry(
            caller_address=session.caller_address,
            purpose=session.purpose,
            language=session.language,
            duration_seconds=session.elapsed_seconds(),
            status=status,
        )

    def _mark_done(self, call_id: str) -> None:
        def done(s: CallSession) -> None:
            s.state = CallState.DONE

        try:
            self._store.mutate(call_id, done)
        except SessionExpired:
            pass


class FinalizationDispatcher:
    """Bounded queue of call ids drained by a fixed pool of worker tasks.

    ``dispatch`` never blocks the webhook: when the queue is full the
    registration is dropped and recorded as such.
    """

    def __init__(
        self,
        pipeline: FinalizationPipeline,
        workers: int = 4,
        queue_size: int = 100,
    ) -> None:
        self._pipeline = pipeline
        self._worker_count = workers
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task] = []
        self._background: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"finalize-{i}")
            for i in range(self._worker_count)
        ]
        log.info("Started %d finalization workers", self._worker_count)

    async def stop(self, drain_timeout: float = 10.0) -> None:
        """Give queued runs ``drain_timeout`` seconds to finish, then cancel workers."""
        if self._workers:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                log.warning("%d finalizations abandoned at shutdown", self._queue.qsize())
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, *self._background, return_exceptions=True)
        self._workers = []
        log.info("Finalization workers stopped")

    def dispatch(self, call_id: str) -> bool:
        """Queue ``call_id`` for finalization. Returns False if it was dropped."""
        try:
            self._queue.put_nowait(call_id)
        except asyncio.QueueFull:
            log.error("Finalization queue full (%d); dropping %s", self._queue.maxsize, call_id)
            session = self._pipeline.reject(call_id)
            if session is not None:
                task = asyncio.get_running_loop().create_task(
                    self._pipeline.record_outcome(session, CallStatus.DROPPED)
                )
                self._background.add(task)
                task.add_done_callback(self._background.discard)
            return False
        log.info("Queued %s for finalization (%d pending)", call_id, self._queue.qsize())
        return True

    async def _worker(self, index: int) -> None:
        while True:
            call_id = await self._queue.get()
            try:
                await self._pipeline.run(call_id)
            except Exception:
                log.exception("Worker %d: finalization of %s crashed", index, call_id)
            finally:
                self._queue.task_done()
