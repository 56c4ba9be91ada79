#!/usr/bin/env python3
"""
FastAPI dependencies for dependency injection.

Services live on the AppContext attached to app.state at startup.
"""

from fastapi import Request

from core.analytics import FeedbackStatsAggregator
from core.app_context import AppContext
from core.export import MatchExporter
from core.matcher.service import MatcherService
from core.queue import MatchingQueue


def get_context(request: Request) -> AppContext:
    """
    FastAPI dependency returning the wired application context.

    Usage:
        @router.get("/endpoint")
        def my_endpoint(ctx: AppContext = Depends(get_context)):
            ...
    """
    return request.app.state.context


def get_matcher(request: Request) -> MatcherService:
    return get_context(request).matcher


def get_queue(request: Request) -> MatchingQueue:
    return get_context(request).queue


def get_stats(request: Request) -> FeedbackStatsAggregator:
    return get_context(request).stats


def get_exporter(request: Request) -> MatchExporter:
    return get_context(request).exporter
