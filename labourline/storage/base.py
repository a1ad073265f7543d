"""Abstract base class for profile and call-log persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from labourline.models.call_log import CallLogEntry
from labourline.models.profile import JobPosting, WorkerProfile


def text_contains(value: Optional[str], needle: str) -> bool:
    """Case-insensitive substring test used by every repository search."""
    return bool(value) and needle.lower() in value.lower()


class ProfileRepository(ABC):
    """Storage for workers, jobs and call logs.

    Saved objects are returned with ``id`` assigned. Searches return every
    profile whose skill or free-text field contains the query
    (case-insensitive), most recently created first.
    """

    @abstractmethod
    async def save_worker(self, worker: WorkerProfile) -> WorkerProfile:
        ...

    @abstractmethod
    async def save_job(self, job: JobPosting) -> JobPosting:
        ...

    @abstractmethod
    async def search_workers(self, skill: str) -> list[WorkerProfile]:
        ...

    @abstractmethod
    async def search_jobs(self, skill: str) -> list[JobPosting]:
        ...

    @abstractmethod
    async def record_call(self, entry: CallLogEntry) -> CallLogEntry:
        ...

    @abstractmethod
    async def recent_calls(self, limit: int = 50) -> list[CallLogEntry]:
        """Newest call-log entries first."""

    def close(self) -> None:
        """Release connections. Called once at app shutdown."""
