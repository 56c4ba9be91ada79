#!/usr/bin/env python3
"""
Preference endpoints - per-user matching preferences.
"""

from fastapi import APIRouter, Depends

from core.matcher.service import MatcherService
from ..dependencies import get_matcher
from ..models.requests import PreferencesUpdate
from ..models.responses import PreferencesResponse

router = APIRouter(prefix="/api/matching/preferences", tags=["preferences"])


@router.get("/{user_id}", response_model=PreferencesResponse)
def get_preferences(
    user_id: str,
    matcher: MatcherService = Depends(get_matcher)
):
    """Saved preferences, or the defaults for a user who has none."""
    preferences = matcher.get_preferences(user_id)
    return PreferencesResponse(success=True, user_id=user_id, preferences=preferences.model_dump())


@router.put("/{user_id}", response_model=PreferencesResponse)
def update_preferences(
    user_id: str,
    update: PreferencesUpdate,
    matcher: MatcherService = Depends(get_matcher)
):
    """
    Update a user's preferences.

    Only the fields sent are changed. Requests that carry this user_id use
    the custom weights (when no overrides are given) and skip excluded
    candidates and jobs; bulk completion notifications are limited to
    matches at or above notification_threshold.
    """
    preferences = matcher.update_preferences(user_id, update.model_dump(exclude_unset=True))
    return PreferencesResponse(success=True, user_id=user_id, preferences=preferences.model_dump())
