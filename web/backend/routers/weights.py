#!/usr/bin/env python3
"""
Weight endpoints - manage the default factor weights.
"""

from fastapi import APIRouter, Depends

from core.matcher.service import MatcherService
from core.scorer.weighting import WEIGHT_PRESETS, weights_to_dict
from ..dependencies import get_matcher
from ..models.requests import WeightsUpdate
from ..models.responses import WeightsResponse

router = APIRouter(prefix="/api/matching", tags=["weights"])


def _response(weights) -> WeightsResponse:
    return WeightsResponse(success=True, weights=weights, presets=list(WEIGHT_PRESETS.keys()))


@router.get("/weights", response_model=WeightsResponse)
def get_weights(matcher: MatcherService = Depends(get_matcher)):
    """Current default weights (normalized)."""
    return _response(weights_to_dict(matcher.weighting.defaults))


@router.put("/weights", response_model=WeightsResponse)
def update_weights(
    update: WeightsUpdate,
    matcher: MatcherService = Depends(get_matcher)
):
    """
    Replace the default weights.

    Categories left out keep their current weight; the result is
    renormalized and persisted. Existing matches are not rescored.
    """
    return _response(matcher.update_default_weights(update.weights))


@router.post("/weights/preset/{preset_name}", response_model=WeightsResponse)
def apply_preset(
    preset_name: str,
    matcher: MatcherService = Depends(get_matcher)
):
    """
    Apply a weight preset.

    Presets:
    - balanced: the configured defaults
    - accessibility_first: accessibility weighted highest
    - skills_first: skills and experience weighted highest
    """
    return _response(matcher.apply_weight_preset(preset_name))
