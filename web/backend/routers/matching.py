#!/usr/bin/env python3
"""
Matching endpoints - score pairs and manage stored matches.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from core.analytics import FeedbackStatsAggregator
from core.matcher.service import MatcherService
from core.models import MatchCriteria
from core.queue import MatchingQueue
from ..dependencies import get_matcher, get_queue, get_stats
from ..models.requests import FeedbackRequest, RefreshRequest, SingleMatchRequest, StatusUpdate
from ..models.responses import FeedbackResponse, MatchesResponse, MatchResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/matching", tags=["matching"])


@router.post("/run", response_model=MatchesResponse)
def run_job_matching(
    criteria: MatchCriteria,
    matcher: MatcherService = Depends(get_matcher)
):
    """
    Match candidates against one job.

    Uses the candidate filter when given, otherwise every known candidate.
    Returns results sorted by score (highest first), narrowed by min_score.
    """
    results = matcher.run_job_matching(criteria)
    return MatchesResponse(
        success=True,
        count=len(results),
        matches=[r.to_dict() for r in results]
    )


@router.post("/single", response_model=None)
def match_single(
    request: SingleMatchRequest,
    queue: MatchingQueue = Depends(get_queue)
):
    """
    Score one candidate against one job.

    Inline by default (bounded by the single-request timeout). With
    queued=true a queue entry is created and its snapshot returned (202).
    """
    outcome = queue.submit_single(
        request.candidate_id,
        request.job_id,
        weight_overrides=request.weight_overrides,
        queued=request.queued,
        priority=request.priority,
        tenant_id=request.tenant_id
    )
    if request.queued:
        return JSONResponse(status_code=202, content={"success": True, "result": outcome.to_dict()})
    return {"success": True, "match": outcome.to_dict()}


@router.get("/{match_id}", response_model=MatchResponse)
def get_match(
    match_id: str,
    matcher: MatcherService = Depends(get_matcher)
):
    """Get one stored match version, including factors and explanations."""
    return MatchResponse(success=True, match=matcher.get_match(match_id).to_dict())


@router.get("/{match_id}/versions", response_model=MatchesResponse)
def list_versions(
    match_id: str,
    matcher: MatcherService = Depends(get_matcher)
):
    """All versions of the (candidate, job) pair the match belongs to, oldest first."""
    versions = matcher.list_versions(match_id)
    return MatchesResponse(
        success=True,
        count=len(versions),
        matches=[v.to_dict() for v in versions]
    )


@router.patch("/{match_id}/status", response_model=MatchResponse)
def update_status(
    match_id: str,
    update: StatusUpdate,
    matcher: MatcherService = Depends(get_matcher)
):
    """
    Move a match to a new review status.

    Allowed: pending -> reviewed/accepted/rejected, reviewed -> accepted/rejected.
    Anything else, or losing a concurrent update, returns 409.
    """
    result = matcher.update_status(match_id, update.status)
    return MatchResponse(success=True, match=result.to_dict())


@router.post("/{match_id}/feedback", response_model=FeedbackResponse)
def add_feedback(
    match_id: str,
    request: FeedbackRequest,
    stats: FeedbackStatsAggregator = Depends(get_stats)
):
    """Append outcome feedback. The stored score is never changed."""
    feedback = stats.record_feedback(
        match_id,
        request.outcome,
        rating=request.rating,
        comment=request.comment,
        user_id=request.user_id
    )
    return FeedbackResponse(success=True, feedback=feedback.to_dict())


@router.post("/{match_id}/refresh", response_model=MatchResponse)
def refresh_match(
    match_id: str,
    request: Optional[RefreshRequest] = None,
    matcher: MatcherService = Depends(get_matcher)
):
    """
    Re-evaluate a match from fresh candidate and job data.

    Stored as a new version; it only becomes current when the previous
    version was still pending.
    """
    overrides = request.weight_overrides if request else None
    result = matcher.refresh(match_id, weight_overrides=overrides)
    return MatchResponse(success=True, match=result.to_dict())


@router.post("/{match_id}/reopen", response_model=MatchResponse)
def reopen_match(
    match_id: str,
    matcher: MatcherService = Depends(get_matcher)
):
    """Administrative: return a reviewed or decided match to pending."""
    result = matcher.reopen(match_id)
    return MatchResponse(success=True, match=result.to_dict())
