#!/usr/bin/env python3
"""
Factor Registry - maps each FactorCategory to its scorer function.
"""

from typing import Callable, Dict

from core.config_loader import ScorerConfig
from core.models import Candidate, Job
from core.scorer.models import FactorCategory, FactorScore
from core.scorer.skills import score_skills
from core.scorer.experience import score_experience
from core.scorer.accessibility import score_accessibility
from core.scorer.location import score_location
from core.scorer.culture import score_culture
from core.scorer.compensation import score_compensation

FactorScorer = Callable[[Candidate, Job, ScorerConfig], FactorScore]

DEFAULT_SCORERS: Dict[FactorCategory, FactorScorer] = {
    FactorCategory.SKILLS: score_skills,
    FactorCategory.EXPERIENCE: score_experience,
    FactorCategory.ACCESSIBILITY: score_accessibility,
    FactorCategory.LOCATION: score_location,
    FactorCategory.CULTURE: score_culture,
    FactorCategory.COMPENSATION: score_compensation,
}


def score_all(candidate: Candidate, job: Job, config: ScorerConfig) -> Dict[FactorCategory, FactorScore]:
    """Run every default scorer synchronously, without time bounds."""
    return {
        category: scorer(candidate, job, config)
        for category, scorer in DEFAULT_SCORERS.items()
    }
