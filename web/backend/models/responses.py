#!/usr/bin/env python3
"""
Response models for API endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any


class FactorDetail(BaseModel):
    """One factor of a match score."""
    category: str
    weight: float = Field(ge=0, le=1)
    raw_score: float = Field(ge=0, le=100)
    detail: str
    positive: bool
    insufficient_data: bool = False


class MatchDetail(BaseModel):
    """A stored match result."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "candidate_id": "cand-1",
                "job_id": "job-1",
                "version": 1,
                "supersedes_id": None,
                "is_current": True,
                "score": 91,
                "confidence": 0.88,
                "status": "pending",
                "reasons": ["Skills: matches 2/2 required skills (1 verified)"],
                "recommendations": [],
            }
        }
    )

    id: str
    candidate_id: str
    job_id: str
    version: int
    supersedes_id: Optional[str] = None
    is_current: bool
    score: int = Field(ge=0, le=100)
    confidence: float = Field(ge=0, le=1)
    factors: List[FactorDetail]
    reasons: List[str]
    recommendations: List[str]
    weights: Dict[str, float]
    status: str
    feedback: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class MatchResponse(BaseModel):
    """Response containing one match."""
    success: bool
    match: MatchDetail


class MatchesResponse(BaseModel):
    """Response containing a list of matches."""
    success: bool
    count: int
    matches: List[MatchDetail]


class PaginatedMatchesResponse(MatchesResponse):
    """Response containing one page of matches."""
    total: int
    page: int
    page_size: int


class FeedbackResponse(BaseModel):
    success: bool
    feedback: Dict[str, Any]


class BulkStatusResponse(BaseModel):
    """Progress snapshot of a queue entry."""
    success: bool
    result: Dict[str, Any]


class QueueEntriesResponse(BaseModel):
    success: bool
    count: int
    entries: List[Dict[str, Any]]


class CancelResponse(BaseModel):
    success: bool
    entry_id: str
    cancelled: bool


class ScoreDistribution(BaseModel):
    """Distribution of match scores."""
    excellent: int = Field(ge=0, description="Matches with score >= 80")
    good: int = Field(ge=0, description="Matches with score 60-79")
    average: int = Field(ge=0, description="Matches with score 40-59")
    poor: int = Field(ge=0, description="Matches with score < 40")


class StatsResponse(BaseModel):
    """Response containing matching statistics."""
    success: bool
    stats: Dict[str, Any]
    score_distribution: ScoreDistribution


class InsightsResponse(BaseModel):
    success: bool
    count: int
    insights: List[Dict[str, Any]]


class WeightsResponse(BaseModel):
    """Current default weights, normalized to sum to 1."""
    success: bool
    weights: Dict[str, float]
    presets: List[str]


class PreferencesResponse(BaseModel):
    """A user's matching preferences."""
    success: bool
    user_id: str
    preferences: Dict[str, Any]
