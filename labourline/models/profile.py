"""Pydantic models for registered workers and posted jobs."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from .call import Language


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class WorkerProfile(BaseModel):
    """A job seeker registered over the phone."""

    id: Optional[int] = None
    caller_address: str
    name: Optional[str] = None
    skill: Optional[str] = None          # work expertise
    location: Optional[str] = None
    experience_years: Optional[int] = Field(default=None, ge=0, le=50)
    preferred_wage: Optional[int] = Field(default=None, ge=0)
    bio: Optional[str] = None
    language: Language = Language.ENGLISH
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def free_text(self) -> Optional[str]:
        return self.bio


class JobPosting(BaseModel):
    """Work offered by an employer over the phone."""

    id: Optional[int] = None
    caller_address: str
    type_of_work: str
    location: str
    wage_offered: Optional[int] = Field(default=None, ge=0)
    organisation: Optional[str] = None
    description: Optional[str] = None
    language: Language = Language.ENGLISH
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def skill(self) -> str:
        return self.type_of_work

    @property
    def free_text(self) -> Optional[str]:
        return self.description
