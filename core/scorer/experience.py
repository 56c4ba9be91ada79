#!/usr/bin/env python3
"""
Experience Factor - years of experience against the job's minimum and target.

Three segments:
- below min_years: quadratic climb from 0 up to experience_score_at_min
- min_years..target_years: linear from experience_score_at_min to experience_score_at_target
- above target_years: saturating toward 100 (diminishing returns)
"""

import logging
import math

from core.config_loader import ScorerConfig
from core.models import Candidate, Job
from core.scorer.models import FactorScore

logger = logging.getLogger(__name__)


def experience_curve(years: float, min_years: float, target_years: float, config: ScorerConfig) -> float:
    """Map years of experience onto the 0-100 experience curve."""
    at_min = config.experience_score_at_min
    at_target = config.experience_score_at_target

    if years < min_years:
        return at_min * (years / min_years) ** 2

    if years < target_years:
        span = target_years - min_years
        return at_min + (at_target - at_min) * (years - min_years) / span

    ratio = years / target_years if target_years > 0 else 1.0 + years
    return at_target + (100.0 - at_target) * (
        1.0 - math.exp(-config.experience_saturation_rate * (ratio - 1.0))
    )


def score_experience(candidate: Candidate, job: Job, config: ScorerConfig) -> FactorScore:
    min_years = job.min_years
    target_years = job.target_years

    if min_years is None and target_years is None:
        return FactorScore.neutral("job states no experience requirement", config)
    if candidate.years_experience is None:
        return FactorScore.neutral("candidate years of experience unknown", config)

    if min_years is None:
        min_years = target_years
    if target_years is None or target_years < min_years:
        target_years = min_years

    years = candidate.years_experience
    score = experience_curve(years, min_years, target_years, config)

    if years < min_years:
        detail = f"{years:g} years, below the {min_years:g} year minimum"
    elif years < target_years:
        detail = f"{years:g} years, meets the minimum of {min_years:g} (target {target_years:g})"
    else:
        detail = f"{years:g} years, at or above the {target_years:g} year target"

    return FactorScore.bounded(score, detail, config)
