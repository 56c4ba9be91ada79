#!/usr/bin/env python3
"""
Stats endpoints - feedback statistics and insights.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from core.analytics import FeedbackStatsAggregator
from ..dependencies import get_stats
from ..models.responses import InsightsResponse, StatsResponse

router = APIRouter(prefix="/api/matching", tags=["stats"])


def _stats_response(stats) -> StatsResponse:
    data = stats.to_dict()
    return StatsResponse(
        success=True,
        stats=data,
        score_distribution=data['score_distribution']
    )


@router.get("/stats", response_model=StatsResponse)
def get_stats_summary(
    job_ids: Optional[List[str]] = Query(default=None, description="Restrict to these jobs"),
    period_days: Optional[int] = Query(default=None, ge=1, le=3650),
    aggregator: FeedbackStatsAggregator = Depends(get_stats)
):
    """
    Get matching statistics.

    Average score, success rate, precision/recall/F1 against hire outcomes,
    score distribution and improvement suggestions. Cached until feedback is
    recorded or the cache TTL expires.
    """
    return _stats_response(aggregator.compute_stats(job_ids=job_ids, period_days=period_days))


@router.get("/insights", response_model=InsightsResponse)
def get_insights(
    job_ids: Optional[List[str]] = Query(default=None),
    aggregator: FeedbackStatsAggregator = Depends(get_stats)
):
    """Skill-demand, accessibility-coverage and algorithm-performance insights."""
    insights = aggregator.generate_insights(job_ids=job_ids)
    return InsightsResponse(
        success=True,
        count=len(insights),
        insights=[i.to_dict() for i in insights]
    )


@router.post("/stats/refresh", response_model=StatsResponse)
def refresh_stats(aggregator: FeedbackStatsAggregator = Depends(get_stats)):
    """Recompute global statistics now, bypassing the cache."""
    return _stats_response(aggregator.refresh())
