"""In-process repository, used when no DATABASE_URL is configured and in tests."""

from __future__ import annotations

import itertools
import logging
import threading

from labourline.models.call_log import CallLogEntry
from labourline.models.profile import JobPosting, WorkerProfile

from .base import ProfileRepository, text_contains

log = logging.getLogger("labourline.storage")


class InMemoryRepository(ProfileRepository):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self.workers: list[WorkerProfile] = []
        self.jobs: list[JobPosting] = []
        self.calls: list[CallLogEntry] = []

    async def save_worker(self, worker: WorkerProfile) -> WorkerProfile:
        with self._lock:
            saved = worker.model_copy(update={"id": next(self._ids)})
            self.workers.append(saved)
        log.info("Saved worker %d", saved.id)
        return saved

    async def save_job(self, job: JobPosting) -> JobPosting:
        with self._lock:
            saved = job.model_copy(update={"id": next(self._ids)})
            self.jobs.append(saved)
        log.info("Saved job %d", saved.id)
        return saved

    async def search_workers(self, skill: str) -> list[WorkerProfile]:
        with self._lock:
            found = [
                w for w in self.workers
                if text_contains(w.skill, skill) or text_contains(w.bio, skill)
            ]
        return found[::-1]

    async def search_jobs(self, skill: str) -> list[JobPosting]:
        with self._lock:
            found = [
                j for j in self.jobs
                if text_contains(j.type_of_work, skill)
                or text_contains(j.description, skill)
            ]
        return found[::-1]

    async def record_call(self, entry: CallLogEntry) -> CallLogEntry:
        with self._lock:
            saved = entry.model_copy(update={"id": next(self._ids)})
            self.calls.append(saved)
        return saved

    async def recent_calls(self, limit: int = 50) -> list[CallLogEntry]:
        with self._lock:
            return self.calls[::-1][:limit]
