#!/usr/bin/env python3
"""
Listing endpoints - current matches per job and per candidate.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from core.matcher.models import MatchStatus
from core.matcher.service import MatcherService
from ..dependencies import get_matcher
from ..models.responses import PaginatedMatchesResponse

router = APIRouter(prefix="/api", tags=["listings"])


def _page(results, total: int, page: int, page_size: int) -> PaginatedMatchesResponse:
    return PaginatedMatchesResponse(
        success=True,
        count=len(results),
        total=total,
        page=page,
        page_size=page_size,
        matches=[r.to_dict() for r in results]
    )


@router.get("/jobs/{job_id}/matches", response_model=PaginatedMatchesResponse)
def list_job_matches(
    job_id: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=200),
    min_score: Optional[int] = Query(default=None, ge=0, le=100, description="Minimum score filter"),
    status: Optional[MatchStatus] = Query(default=None),
    matcher: MatcherService = Depends(get_matcher)
):
    """Current matches for a job, highest score first."""
    results, total = matcher.list_for_job(job_id, page, page_size, min_score, status)
    return _page(results, total, page, page_size)


@router.get("/candidates/{candidate_id}/matches", response_model=PaginatedMatchesResponse)
def list_candidate_matches(
    candidate_id: str,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=200),
    min_score: Optional[int] = Query(default=None, ge=0, le=100, description="Minimum score filter"),
    status: Optional[MatchStatus] = Query(default=None),
    matcher: MatcherService = Depends(get_matcher)
):
    """Current matches for a candidate, highest score first."""
    results, total = matcher.list_for_candidate(candidate_id, page, page_size, min_score, status)
    return _page(results, total, page, page_size)
