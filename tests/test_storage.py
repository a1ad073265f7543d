"""Tests for the in-memory and SQLAlchemy repositories."""

from datetime import datetime, timedelta, timezone

import pytest

from labourline.models.call import CallStatus, Language, Purpose
from labourline.models.call_log import CallLogEntry
from labourline.models.profile import JobPosting, WorkerProfile
from labourline.storage import InMemoryRepository, ProfileRepository, SqlRepository

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sql"])
def repo(request):
    if request.param == "memory":
        yield InMemoryRepository()
    else:
        repo = SqlRepository("sqlite://")
        yield repo
        repo.close()


def _worker(skill, bio=None, minutes=0, **kwargs):
    return WorkerProfile(
        caller_address="+919800000001", skill=skill, bio=bio, location="Bangalore",
        created_at=T0 + timedelta(minutes=minutes), **kwargs,
    )


def _job(type_of_work, description=None, minutes=0, **kwargs):
    return JobPosting(
        caller_address="+919800000009", type_of_work=type_of_work, location="Bangalore",
        description=description, created_at=T0 + timedelta(minutes=minutes), **kwargs,
    )


class TestABC:
    def test_cannot_instantiate(self):
        with pytest.raises(TypeError):
            ProfileRepository()


class TestProfiles:
    async def test_save_assigns_ids(self, repo):
        a = await repo.save_worker(_worker("Mason"))
        b = await repo.save_job(_job("Mason"))
        assert a.id is not None
        assert b.id is not None

    async def test_worker_round_trips_fields(self, repo):
        await repo.save_worker(_worker(
            "Plumber", name="Ravi", experience_years=4, preferred_wage=550,
            language=Language.KANNADA,
        ))
        found = (await repo.search_workers("plumber"))[0]
        assert (found.name, found.skill, found.location) == ("Ravi", "Plumber", "Bangalore")
        assert found.experience_years == 4
        assert found.preferred_wage == 550
        assert found.language == Language.KANNADA

    async def test_search_workers_skill_or_bio(self, repo):
        await repo.save_worker(_worker("ELECTRICIAN", minutes=1))
        await repo.save_worker(_worker("Helper", bio="did electrician work", minutes=2))
        await repo.save_worker(_worker("Cook", minutes=3))

        found = await repo.search_workers("electrician")
        assert [w.skill for w in found] == ["Helper", "ELECTRICIAN"]

    async def test_search_jobs_type_or_description(self, repo):
        await repo.save_job(_job("Driver", minutes=1))
        await repo.save_job(_job("Helper", description="needs a driver licence", minutes=2))
        await repo.save_job(_job("Cook", minutes=3))

        found = await repo.search_jobs("DRIVER")
        assert [j.type_of_work for j in found] == ["Helper", "Driver"]

    async def test_search_no_hits(self, repo):
        await repo.save_job(_job("Driver"))
        assert await repo.search_jobs("tailor") == []

    @pytest.mark.parametrize("query", ["%", "_", "Elec%", "Electr_cian"])
    async def test_wildcard_characters_are_literal(self, repo, query):
        await repo.save_job(_job("Electrician"))
        await repo.save_worker(_worker("Electrician"))
        assert await repo.search_jobs(query) == []
        assert await repo.search_workers(query) == []

    async def test_literal_percent_matches(self, repo):
        await repo.save_job(_job("Helper", description="pays 100% on time"))
        found = await repo.search_jobs("100%")
        assert [j.type_of_work for j in found] == ["Helper"]


class TestBackendsAgree:
    QUERIES = ["electric", "ELECTRICIAN", "%", "_", "wire", "a_b", "100%"]

    async def test_same_hits_in_memory_and_sql(self):
        memory, sql = InMemoryRepository(), SqlRepository("sqlite://")
        try:
            for i, (kind, desc) in enumerate([
                ("Electrician", None),
                ("Helper", "wire a_b panels"),
                ("Cook", "100% veg"),
            ]):
                for repo in (memory, sql):
                    await repo.save_job(_job(kind, description=desc, minutes=i))

            for query in self.QUERIES:
                mem_hits = [j.type_of_work for j in await memory.search_jobs(query)]
                sql_hits = [j.type_of_work for j in await sql.search_jobs(query)]
                assert mem_hits == sql_hits, query
        finally:
            sql.close()


class TestCallLogs:
    async def test_record_and_list_newest_first(self, repo):
        for i, status in enumerate([CallStatus.COMPLETED, CallStatus.FAILED, CallStatus.DROPPED]):
            await repo.record_call(CallLogEntry(
                caller_address="+919800000001",
                purpose=Purpose.EMPLOYER,
                language=Language.HINDI,
                duration_seconds=30 + i,
                status=status,
                created_at=T0 + timedelta(minutes=i),
            ))

        calls = await repo.recent_calls(limit=2)
        assert [c.status for c in calls] == [CallStatus.DROPPED, CallStatus.FAILED]
        assert calls[0].purpose == Purpose.EMPLOYER
        assert calls[0].duration_seconds == 32

    async def test_purpose_optional(self, repo):
        saved = await repo.record_call(CallLogEntry(caller_address="+919800000001"))
        assert saved.id is not None
        assert (await repo.recent_calls())[0].purpose is None
