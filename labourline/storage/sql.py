"""SQLAlchemy-backed repository.

Tables mirror the pydantic models one-to-one. The ORM session API is
blocking, so every public method hops to the default executor.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, func, or_
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from labourline.models.call import CallStatus, Language, Purpose
from labourline.models.call_log import CallLogEntry
from labourline.models.profile import JobPosting, WorkerProfile

from .base import ProfileRepository

log = logging.getLogger("labourline.storage")

Base = declarative_base()


class WorkerRow(Base):
    __tablename__ = "workers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_no = Column(String(20), nullable=False, index=True)
    name = Column(String(100), nullable=True)
    expertise = Column(String(200), nullable=True, index=True)
    location = Column(String(200), nullable=True)
    experience_years = Column(Integer, nullable=True)
    preferred_wage = Column(Integer, nullable=True)
    bio = Column(Text, nullable=True)
    language = Column(String(5), nullable=False, default="en")
    created_at = Column(DateTime(timezone=True), nullable=False)


class JobRow(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_no = Column(String(20), nullable=False, index=True)
    type_of_work = Column(String(200), nullable=False, index=True)
    location = Column(String(200), nullable=False)
    wage_offered = Column(Integer, nullable=True)
    organisation = Column(String(200), nullable=True)
    description = Column(Text, nullable=True)
    language = Column(String(5), nullable=False, default="en")
    created_at = Column(DateTime(timezone=True), nullable=False)


class CallLogRow(Base):
    __tablename__ = "call_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_no = Column(String(20), nullable=False)
    purpose = Column(String(20), nullable=True)
    language = Column(String(5), nullable=False)
    duration_seconds = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


def _worker(row: WorkerRow) -> WorkerProfile:
    return WorkerProfile(
        id=row.id,
        caller_address=row.phone_no,
        name=row.name,
        skill=row.expertise,
        location=row.location,
        experience_years=row.experience_years,
        preferred_wage=row.preferred_wage,
        bio=row.bio,
        language=Language(row.language),
        created_at=row.created_at,
    )


def _job(row: JobRow) -> JobPosting:
    return JobPosting(
        id=row.id,
        caller_address=row.phone_no,
        type_of_work=row.type_of_work,
        location=row.location,
        wage_offered=row.wage_offered,
        organisation=row.organisation,
        description=row.description,
        language=Language(row.language),
        created_at=row.created_at,
    )


def _call(row: CallLogRow) -> CallLogEntry:
    return CallLogEntry(
        id=row.id,
        caller_address=row.phone_no,
        purpose=Purpose(row.purpose) if row.purpose else None,
        language=Language(row.language),
        duration_seconds=row.duration_seconds,
        status=CallStatus(row.status),
        created_at=row.created_at,
    )


class SqlRepository(ProfileRepository):
    """Repository over any SQLAlchemy URL (``sqlite://`` for an in-memory DB)."""

    def __init__(self, database_url: str, create_tables: bool = True) -> None:
        kwargs: dict[str, Any] = {}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every thread sees the same in-memory DB
            kwargs = {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }
        elif database_url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}

        self._engine = create_engine(database_url, **kwargs)
        self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        if create_tables:
            Base.metadata.create_all(self._engine)
        log.info("SQL repository ready (%s)", self._engine.url.get_backend_name())

    async def _run_in_executor(self, func, *args) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    # ── Sync implementations ──────────────────────────────────

    def _insert(self, row: Base) -> Base:
        with self._session_factory() as db:
            db.add(row)
            db.commit()
            db.refresh(row)
            return row

    def _search_workers(self, skill: str) -> list[WorkerProfile]:
        needle = skill.lower()
        with self._session_factory() as db:
            rows = (
                db.query(WorkerRow)
                .filter(
                    or_(
                        func.lower(WorkerRow.expertise).contains(needle, autoescape=True),
                        func.lower(WorkerRow.bio).contains(needle, autoescape=True),
                    )
                )
                .order_by(WorkerRow.created_at.desc(), WorkerRow.id.desc())
                .all()
            )
            return [_worker(r) for r in rows]

    def _search_jobs(self, skill: str) -> list[JobPosting]:
        needle = skill.lower()
        with self._session_factory() as db:
            rows = (
                db.query(JobRow)
                .filter(
                    or_(
                        func.lower(JobRow.type_of_work).contains(needle, autoescape=True),
                        func.lower(JobRow.description).contains(needle, autoescape=True),
                    )
                )
                .order_by(JobRow.created_at.desc(), JobRow.id.desc())
                .all()
            )
            return [_job(r) for r in rows]

    def _recent_calls(self, limit: int) -> list[CallLogEntry]:
        with self._session_factory() as db:
            rows = (
                db.query(CallLogRow)
                .order_by(CallLogRow.created_at.desc(), CallLogRow.id.desc())
                .limit(limit)
                .all()
            )
            return [_call(r) for r in rows]

    # ── ProfileRepository interface ───────────────────────────

    async def save_worker(self, worker: WorkerProfile) -> WorkerProfile:
        row = WorkerRow(
            phone_no=worker.caller_address,
            name=worker.name,
            expertise=worker.skill,
            location=worker.location,
            experience_years=worker.experience_years,
            preferred_wage=worker.preferred_wage,
            bio=worker.bio,
            language=worker.language.value,
            created_at=worker.created_at,
        )
        row = await self._run_in_executor(self._insert, row)
        log.info("Saved worker %d", row.id)
        return worker.model_copy(update={"id": row.id})

    async def save_job(self, job: JobPosting) -> JobPosting:
        row = JobRow(
            phone_no=job.caller_address,
            type_of_work=job.type_of_work,
            location=job.location,
            wage_offered=job.wage_offered,
            organisation=job.organisation,
            description=job.description,
            language=job.language.value,
            created_at=job.created_at,
        )
        row = await self._run_in_executor(self._insert, row)
        log.info("Saved job %d", row.id)
        return job.model_copy(update={"id": row.id})

    async def search_workers(self, skill: str) -> list[WorkerProfile]:
        return await self._run_in_executor(self._search_workers, skill)

    async def search_jobs(self, skill: str) -> list[JobPosting]:
        return await self._run_in_executor(self._search_jobs, skill)

    async def record_call(self, entry: CallLogEntry) -> CallLogEntry:
        row = CallLogRow(
            phone_no=entry.caller_address,
            purpose=entry.purpose.value if entry.purpose else None,
            language=entry.language.value,
            duration_seconds=entry.duration_seconds,
            status=entry.status.value,
            created_at=entry.created_at,
        )
        row = await self._run_in_executor(self._insert, row)
        return entry.model_copy(update={"id": row.id})

    async def recent_calls(self, limit: int = 50) -> list[CallLogEntry]:
        return await self._run_in_executor(self._recent_calls, limit)

    def close(self) -> None:
        self._engine.dispose()
        log.info("SQL repository closed")
