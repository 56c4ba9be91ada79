#!/usr/bin/env python3
"""
Request models for API endpoints.

Weight overrides are passed through untyped so the weighting policy reports
malformed values itself.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from core.matcher.models import FeedbackOutcome, MatchStatus
from core.models import Priority


class SingleMatchRequest(BaseModel):
    """Request to score one candidate against one job."""
    candidate_id: str = Field(..., min_length=1)
    job_id: str = Field(..., min_length=1)
    weight_overrides: Optional[Dict[str, Any]] = Field(
        None,
        description="Partial category -> weight mapping, renormalized over the defaults"
    )
    queued: bool = Field(default=False, description="Run as a queue entry instead of inline")
    priority: Priority = Priority.NORMAL
    tenant_id: str = "default"


class StatusUpdate(BaseModel):
    """Request to move a match to a new review status."""
    status: MatchStatus


class FeedbackRequest(BaseModel):
    """Outcome feedback for a match."""
    outcome: FeedbackOutcome
    rating: Optional[int] = Field(None, ge=1, le=5, description="Optional 1-5 rating")
    comment: Optional[str] = Field(None, max_length=2000)
    user_id: Optional[str] = None


class RefreshRequest(BaseModel):
    """Re-evaluate a match, optionally with different weights."""
    weight_overrides: Optional[Dict[str, Any]] = None


class WeightsUpdate(BaseModel):
    """Request to replace the default weights."""
    weights: Dict[str, Any] = Field(..., description="Category -> non-negative weight")


class PreferencesUpdate(BaseModel):
    """Partial update of a user's matching preferences; omitted fields keep their value."""
    model_config = ConfigDict(extra="forbid")

    custom_weights: Optional[Dict[str, Any]] = Field(
        None,
        description="Weights used when a request has no overrides; null clears them"
    )
    excluded_candidates: Optional[List[str]] = None
    excluded_jobs: Optional[List[str]] = None
    notification_threshold: Optional[int] = Field(None, ge=0, le=100)
    max_daily_matches: Optional[int] = Field(None, ge=1)
