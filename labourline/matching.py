"""Weighted scoring of workers against jobs and jobs against workers.

Candidates are the stored profiles on the opposite side whose skill or
free-text field contains the query skill. Each gets::

    score = relevance/3*100 * skill_weight
          + location_tier    * location_weight
          + factor           * experience_weight

where ``factor`` is wage fit when a worker is looking for jobs and
experience when an employer is looking for workers. Scores are capped
at 100 and the top ``max_matches`` are returned, best first.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from labourline.models.match import MatchCandidate, Side
from labourline.models.profile import JobPosting, WorkerProfile
from labourline.storage.base import ProfileRepository, text_contains

log = logging.getLogger("labourline.matching")

# Worker wants more than 20% over the offer
WAGE_GAP_RATIO = 1.2
WAGE_GAP_PENALTY = 0.9

NEUTRAL_WAGE_FACTOR = 50.0
UNKNOWN_EXPERIENCE_FACTOR = 30.0


@dataclass(frozen=True)
class MatchWeights:
    location: float = 0.4
    experience: float = 0.3
    skill: float = 0.3


def relevance_tier(query_skill: str, skill: Optional[str], free_text: Optional[str]) -> int:
    """3 for a skill hit, 2 for a free-text-only hit, 1 otherwise."""
    if text_contains(skill, query_skill):
        return 3
    if text_contains(free_text, query_skill):
        return 2
    return 1


def location_tier(query_location: Optional[str], location: Optional[str]) -> int:
    """100 for an exact (case-insensitive) match, 50 for containment, else 0."""
    if not query_location or not location:
        return 0
    if location.strip().lower() == query_location.strip().lower():
        return 100
    if text_contains(location, query_location.strip()):
        return 50
    return 0


def wage_factor(wage_offered: Optional[int], preferred_wage: Optional[int]) -> float:
    if wage_offered is None or not preferred_wage:
        return NEUTRAL_WAGE_FACTOR
    if wage_offered >= preferred_wage:
        return 100.0
    return wage_offered / preferred_wage * 100


def experience_factor(experience_years: Optional[int]) -> float:
    if experience_years is None:
        return UNKNOWN_EXPERIENCE_FACTOR
    return min(experience_years / 10 * 100, 100.0)


class MatchingEngine:
    """Finds and ranks the best candidates for a newly registered profile."""

    def __init__(
        self,
        repository: ProfileRepository,
        weights: MatchWeights | None = None,
        max_matches: int = 2,
    ) -> None:
        self._repository = repository
        self._weights = weights or MatchWeights()
        self._max_matches = max_matches

    def _compose(self, relevance: int, location: int, factor: float) -> float:
        w = self._weights
        return relevance / 3 * 100 * w.skill + location * w.location + factor * w.experience

    def score_job(
        self,
        job: JobPosting,
        query_skill: str,
        query_location: Optional[str],
        preferred_wage: Optional[int],
    ) -> float:
        """Score a job for a worker."""
        score = self._compose(
            relevance_tier(query_skill, job.type_of_work, job.description),
            location_tier(query_location, job.location),
            wage_factor(job.wage_offered, preferred_wage),
        )
        return round(min(score, 100.0), 2)

    def score_worker(
        self,
        worker: WorkerProfile,
        query_skill: str,
        query_location: Optional[str],
        wage_offered: Optional[int],
    ) -> float:
        """Score a worker for a job."""
        score = self._compose(
            relevance_tier(query_skill, worker.skill, worker.bio),
            location_tier(query_location, worker.location),
            experience_factor(worker.experience_years),
        )
        if (
            worker.preferred_wage is not None
            and wage_offered is not None
            and worker.preferred_wage > wage_offered * WAGE_GAP_RATIO
        ):
            score *= WAGE_GAP_PENALTY
        return round(min(score, 100.0), 2)

    async def find_matches(
        self,
        query_skill: Optional[str],
        query_location: Optional[str],
        query_wage: Optional[int],
        side: Side,
    ) -> list[MatchCandidate]:
        """Ranked candidates on ``side``, at most ``max_matches``.

        Never raises: a retrieval or scoring failure yields an empty list.
        """
        if not query_skill or not query_skill.strip():
            log.info("No skill to match on; skipping %s search", side.value)
            return []
        query_skill = query_skill.strip()

        try:
            if side is Side.JOBS:
                jobs = await self._repository.search_jobs(query_skill)
                candidates = [
                    MatchCandidate(
                        side=Side.JOBS,
                        profile_id=job.id,
                        score=self.score_job(job, query_skill, query_location, query_wage),
                        contact_address=job.caller_address,
                        skill=job.type_of_work,
                        location=job.location,
                        wage=job.wage_offered,
                        organisation=job.organisation,
                    )
                    for job in jobs
                ]
            else:
                workers = await self._repository.search_workers(query_skill)
                candidates = [
                    MatchCandidate(
                        side=Side.WORKERS,
                        profile_id=worker.id,
                        score=self.score_worker(worker, query_skill, query_location, query_wage),
                        contact_address=worker.caller_address,
                        skill=worker.skill,
                        location=worker.location,
                        name=worker.name,
                        experience_years=worker.experience_years,
                        wage=worker.preferred_wage,
                    )
                    for worker in workers
                ]
        except Exception:
            log.exception("Matching failed for %s '%s'", side.value, query_skill)
            return []

        # sorted() is stable, so equal scores keep retrieval order
        ranked = sorted(candidates, key=lambda c: c.score, reverse=True)
        log.info(
            "%d %s candidates for '%s', returning %d",
            len(ranked), side.value, query_skill, min(len(ranked), self._max_matches),
        )
        return ranked[: self._max_matches]
