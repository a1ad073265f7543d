"""Tests for MatchingEngine scoring and ranking."""

from unittest.mock import AsyncMock

import pytest

from labourline.matching import (
    MatchingEngine,
    MatchWeights,
    experience_factor,
    location_tier,
    relevance_tier,
    wage_factor,
)
from labourline.models.match import Side
from labourline.models.profile import JobPosting, WorkerProfile


def _job(type_of_work, location, wage=None, description=None, phone="+919800000100"):
    return JobPosting(
        caller_address=phone, type_of_work=type_of_work, location=location,
        wage_offered=wage, description=description,
    )


def _worker(skill, location, experience=None, wage=None, bio=None, name=None, phone="+919800000200"):
    return WorkerProfile(
        caller_address=phone, name=name, skill=skill, location=location,
        experience_years=experience, preferred_wage=wage, bio=bio,
    )


@pytest.fixture
def engine(repository):
    return MatchingEngine(repository, MatchWeights(), max_matches=2)


# ── Tier and factor helpers ─────────────────────────────────────────


class TestTiers:
    @pytest.mark.parametrize("skill,free_text,expected", [
        ("Electrician", None, 3),
        ("Senior electrician", "anything", 3),
        ("Helper", "Need an ELECTRICIAN for wiring", 2),
        ("Helper", "Painting", 1),
        (None, None, 1),
    ])
    def test_relevance(self, skill, free_text, expected):
        assert relevance_tier("electrician", skill, free_text) == expected

    @pytest.mark.parametrize("query,location,expected", [
        ("Bangalore", "bangalore", 100),
        ("Bangalore", " Bangalore ", 100),
        ("Bangalore", "Bangalore North", 50),
        ("Bangalore", "Mysore", 0),
        ("Bangalore", None, 0),
        (None, "Bangalore", 0),
    ])
    def test_location(self, query, location, expected):
        assert location_tier(query, location) == expected

    @pytest.mark.parametrize("offered,preferred,expected", [
        (600, 500, 100.0),
        (500, 500, 100.0),
        (400, 500, 80.0),
        (None, 500, 50.0),
        (600, None, 50.0),
        (600, 0, 50.0),
    ])
    def test_wage_factor(self, offered, preferred, expected):
        assert wage_factor(offered, preferred) == pytest.approx(expected)

    @pytest.mark.parametrize("years,expected", [
        (0, 0.0),
        (5, 50.0),
        (10, 100.0),
        (25, 100.0),
        (None, 30.0),
    ])
    def test_experience_factor(self, years, expected):
        assert experience_factor(years) == pytest.approx(expected)


# ── Scoring ─────────────────────────────────────────────────────────


class TestScoring:
    async def test_perfect_job_match_scores_100(self, engine, repository):
        await repository.save_job(_job("Electrician", "Bangalore", wage=600))
        matches = await engine.find_matches("Electrician", "Bangalore", 500, Side.JOBS)

        assert len(matches) == 1
        assert matches[0].score == pytest.approx(100.0)
        assert matches[0].side == Side.JOBS
        assert matches[0].wage == 600

    async def test_unknown_wage_is_neutral(self, engine, repository):
        await repository.save_job(_job("Electrician", "Bangalore", wage=600))
        matches = await engine.find_matches("Electrician", "Bangalore", None, Side.JOBS)
        # 30 skill + 40 location + 50 * 0.3 wage
        assert matches[0].score == pytest.approx(85.0)

    async def test_free_text_hit_scores_lower(self, engine, repository):
        await repository.save_job(_job("Helper", "Mysore", wage=300, description="electrician assistant"))
        matches = await engine.find_matches("electrician", "Bangalore", 300, Side.JOBS)
        # 2/3*100*0.3 + 0 + 100*0.3
        assert matches[0].score == pytest.approx(50.0)

    async def test_worker_experience_factor(self, engine, repository):
        await repository.save_worker(_worker("Plumber", "Mysore", experience=5))
        matches = await engine.find_matches("plumber", "mysore", 400, Side.WORKERS)
        # 30 + 40 + 50 * 0.3
        assert matches[0].score == pytest.approx(85.0)
        assert matches[0].experience_years == 5

    async def test_worker_unknown_experience(self, engine, repository):
        await repository.save_worker(_worker("Plumber", "Mysore"))
        matches = await engine.find_matches("Plumber", "Mysore", None, Side.WORKERS)
        assert matches[0].score == pytest.approx(79.0)

    async def test_worker_wage_gap_penalty(self, engine, repository):
        await repository.save_worker(_worker("Plumber", "Mysore", experience=10, wage=1000))
        matches = await engine.find_matches("Plumber", "Mysore", 500, Side.WORKERS)
        assert matches[0].score == pytest.approx(90.0)

    async def test_no_penalty_within_twenty_percent(self, engine, repository):
        await repository.save_worker(_worker("Plumber", "Mysore", experience=10, wage=600))
        matches = await engine.find_matches("Plumber", "Mysore", 500, Side.WORKERS)
        assert matches[0].score == pytest.approx(100.0)

    async def test_score_capped_at_100(self, repository):
        engine = MatchingEngine(repository, MatchWeights(location=1.0, experience=1.0, skill=1.0))
        await repository.save_job(_job("Electrician", "Bangalore", wage=600))
        matches = await engine.find_matches("Electrician", "Bangalore", 500, Side.JOBS)
        assert matches[0].score == 100.0

    async def test_scores_within_bounds(self, engine, repository):
        await repository.save_worker(_worker("Mason", "Hubli", experience=50, wage=5000))
        await repository.save_worker(_worker("Mason helper", "Hubli East", experience=0))
        await repository.save_worker(_worker("Cook", "Delhi", bio="mason work too", wage=1))
        engine = MatchingEngine(repository, max_matches=10)
        matches = await engine.find_matches("mason", "Hubli", 100, Side.WORKERS)

        assert len(matches) == 3
        for m in matches:
            assert 0 <= m.score <= 100


# ── Ranking ─────────────────────────────────────────────────────────


class TestRanking:
    async def test_top_two_of_five(self, engine, repository):
        jobs = [
            _job("Electrician", "Mysore", wage=100, phone="+910000000001"),
            _job("Electrician", "Bangalore", wage=600, phone="+910000000002"),
            _job("Helper", "Delhi", description="electrician", phone="+910000000003"),
            _job("Electrician", "Bangalore Rural", wage=600, phone="+910000000004"),
            _job("Electrician", "Pune", wage=500, phone="+910000000005"),
        ]
        for job in jobs:
            await repository.save_job(job)

        matches = await engine.find_matches("Electrician", "Bangalore", 500, Side.JOBS)

        assert len(matches) == 2
        assert [m.contact_address for m in matches] == ["+910000000002", "+910000000004"]
        assert matches[0].score >= matches[1].score

    async def test_sorted_non_increasing(self, repository):
        engine = MatchingEngine(repository, max_matches=10)
        for i, location in enumerate(["Pune", "Bangalore", "Bangalore North", "Mysore"]):
            await repository.save_job(_job("Driver", location, wage=200 + i * 100))
        matches = await engine.find_matches("driver", "Bangalore", 400, Side.JOBS)
        scores = [m.score for m in matches]
        assert scores == sorted(scores, reverse=True)

    async def test_ties_keep_retrieval_order(self, repository):
        engine = MatchingEngine(repository, max_matches=5)
        await repository.save_job(_job("Cook", "Hubli", wage=300, phone="+910000000001"))
        await repository.save_job(_job("Cook", "Hubli", wage=300, phone="+910000000002"))
        matches = await engine.find_matches("Cook", "Hubli", 300, Side.JOBS)
        # Repository returns newest first
        assert [m.contact_address for m in matches] == ["+910000000002", "+910000000001"]

    async def test_no_overlap_returns_empty(self, engine, repository):
        await repository.save_job(_job("Carpenter", "Bangalore", wage=600))
        assert await engine.find_matches("Tailor", "Bangalore", 500, Side.JOBS) == []


# ── Failure handling ────────────────────────────────────────────────


class TestFailures:
    async def test_repository_error_returns_empty(self, engine, repository):
        repository.search_jobs = AsyncMock(side_effect=RuntimeError("db down"))
        assert await engine.find_matches("Electrician", "Bangalore", 500, Side.JOBS) == []

    @pytest.mark.parametrize("skill", [None, "", "   "])
    async def test_blank_skill_skips_search(self, engine, repository, skill):
        repository.search_workers = AsyncMock(return_value=[])
        assert await engine.find_matches(skill, "Bangalore", 500, Side.WORKERS) == []
        repository.search_workers.assert_not_called()
