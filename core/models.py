#!/usr/bin/env python3
"""
Domain Models - candidate and job snapshots plus matching requests.

Candidates and jobs are read-only snapshots handed to the scorers. Requests
are validated here; anything that fails validation surfaces as
InvalidCriteria before work is scheduled.
"""

from enum import Enum
from typing import List, Dict, Optional, Set, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.exceptions import InvalidCriteria


class WorkMode(str, Enum):
    ONSITE = "onsite"
    HYBRID = "hybrid"
    REMOTE = "remote"


class AccommodationType(str, Enum):
    """Accommodation needs (candidate side) and accessibility features (job side)."""
    WHEELCHAIR_ACCESS = "wheelchair_access"
    VISUAL_AIDS = "visual_aids"
    HEARING_AIDS = "hearing_aids"
    COGNITIVE_SUPPORT = "cognitive_support"
    FLEXIBLE_SCHEDULE = "flexible_schedule"
    REMOTE_WORK = "remote_work"


# Names used by older profile exports
ACCOMMODATION_ALIASES = {
    "mobility_access": AccommodationType.WHEELCHAIR_ACCESS,
    "flexible_hours": AccommodationType.FLEXIBLE_SCHEDULE,
}


class SkillCategory(str, Enum):
    TECHNICAL = "technical"
    SOFT = "soft"
    LANGUAGE = "language"
    TOOL = "tool"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


def _normalize_accommodations(value: Any) -> Any:
    if value is None:
        return None
    normalized = []
    for item in value:
        if isinstance(item, str):
            key = item.strip().lower().replace(" ", "_").replace("-", "_")
            normalized.append(ACCOMMODATION_ALIASES.get(key, key))
        else:
            normalized.append(item)
    return normalized


class Skill(BaseModel):
    name: str = Field(..., min_length=1)
    proficiency: float = Field(50.0, ge=0, le=100)
    category: SkillCategory = SkillCategory.TECHNICAL
    verified: bool = False


class Location(BaseModel):
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None


class CompensationRange(BaseModel):
    min: float = Field(..., ge=0)
    max: float = Field(..., ge=0)
    currency: str = "EUR"

    @field_validator("max")
    @classmethod
    def _max_not_below_min(cls, v: float, info) -> float:
        low = info.data.get("min")
        if low is not None and v < low:
            raise ValueError(f"max ({v}) must be >= min ({low})")
        return v


class Candidate(BaseModel):
    """Candidate snapshot as returned by the candidate store."""
    id: str
    skills: List[Skill] = Field(default_factory=list)
    years_experience: Optional[float] = Field(None, ge=0)
    location: Optional[Location] = None
    accommodation_needs: Optional[Set[AccommodationType]] = None
    compensation: Optional[CompensationRange] = None
    work_modes: Set[WorkMode] = Field(default_factory=set)
    culture_tags: Set[str] = Field(default_factory=set)

    @field_validator("accommodation_needs", mode="before")
    @classmethod
    def normalize_needs(cls, v: Any) -> Any:
        return _normalize_accommodations(v)


class Job(BaseModel):
    """Job posting snapshot as returned by the job store."""
    id: str
    required_skills: List[str] = Field(default_factory=list)
    min_years: Optional[float] = Field(None, ge=0)
    target_years: Optional[float] = Field(None, ge=0)
    location: Optional[Location] = None
    accessibility_features: Set[AccommodationType] = Field(default_factory=set)
    compensation: Optional[CompensationRange] = None
    work_modes: Set[WorkMode] = Field(default_factory=set)
    culture_tags: Set[str] = Field(default_factory=set)

    @field_validator("accessibility_features", mode="before")
    @classmethod
    def normalize_features(cls, v: Any) -> Any:
        return _normalize_accommodations(v) or []

    @property
    def offers_remote(self) -> bool:
        return (
            WorkMode.REMOTE in self.work_modes
            or AccommodationType.REMOTE_WORK in self.accessibility_features
        )


class CandidateCriteria(BaseModel):
    """Candidate selection and weighting shared by single and bulk requests."""
    candidate_ids: Optional[List[str]] = None
    user_id: Optional[str] = Field(None, description="Apply this user's saved matching preferences")
    weight_overrides: Optional[Dict[str, float]] = None
    min_score: Optional[int] = Field(None, ge=0, le=100)


class MatchCriteria(CandidateCriteria):
    """Criteria for matching candidates against one job."""
    job_id: str = Field(..., min_length=1)


class MatchingPreferences(BaseModel):
    """
    Per-user matching preferences.

    custom_weights is used when a request carries no weight overrides.
    Excluded candidates and jobs are skipped before any pair is scored.
    Completion notifications list at most max_daily_matches matches scoring
    notification_threshold or more, and are skipped when there are none.
    """
    model_config = ConfigDict(extra="forbid")

    custom_weights: Optional[Dict[str, Any]] = None
    excluded_candidates: List[str] = Field(default_factory=list)
    excluded_jobs: List[str] = Field(default_factory=list)
    notification_threshold: int = Field(75, ge=0, le=100)
    max_daily_matches: int = Field(10, ge=1)


class BulkMatchingRequest(BaseModel):
    job_ids: List[str] = Field(..., min_length=1)
    criteria: CandidateCriteria = Field(default_factory=CandidateCriteria)
    notify_on_completion: bool = False
    priority: Priority = Priority.NORMAL
    tenant_id: str = "default"

    @field_validator("job_ids")
    @classmethod
    def _dedupe_job_ids(cls, v: List[str]) -> List[str]:
        seen = set()
        ordered = []
        for job_id in v:
            if not job_id:
                raise ValueError("job ids must be non-empty")
            if job_id not in seen:
                seen.add(job_id)
                ordered.append(job_id)
        return ordered


def parse_criteria(data: Dict[str, Any]) -> MatchCriteria:
    """Validate raw criteria, raising InvalidCriteria instead of ValidationError."""
    try:
        return MatchCriteria.model_validate(data)
    except ValidationError as e:
        raise InvalidCriteria(f"Invalid match criteria: {e}") from e


def parse_preferences(data: Dict[str, Any]) -> MatchingPreferences:
    try:
        return MatchingPreferences.model_validate(data)
    except ValidationError as e:
        raise InvalidCriteria(f"Invalid matching preferences: {e}") from e


def parse_bulk_request(data: Dict[str, Any]) -> BulkMatchingRequest:
    """Validate a raw bulk request, raising InvalidCriteria on failure."""
    try:
        return BulkMatchingRequest.model_validate(data)
    except ValidationError as e:
        raise InvalidCriteria(f"Invalid bulk matching request: {e}") from e
