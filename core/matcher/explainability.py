#!/usr/bin/env python3
"""
Explainability Module - human-readable reasons and recommendations.

Reasons are ranked by factor impact, impact = weight * (raw_score - neutral):
- up to two positive factors, largest impact first
- then the single most damaging negative factor
- topped up from the remaining factors until there are at least two

Recommendations are template-based and deterministic: the weakest factor,
an accessibility-gap entry whenever accessibility is below neutral, and
"complete the profile" hints for factors scored without data. At most three.
"""

from typing import List, Tuple
import logging

from core.config_loader import ScorerConfig
from core.scorer.models import CATEGORY_LABELS, CATEGORY_ORDER, Factor, FactorCategory

logger = logging.getLogger(__name__)

MIN_REASONS = 2
MAX_POSITIVE_REASONS = 2
MAX_RECOMMENDATIONS = 3

RECOMMENDATION_TEMPLATES = {
    FactorCategory.SKILLS: "Close the skills gap: build or verify the missing required skills",
    FactorCategory.EXPERIENCE: "Highlight projects that offset the experience gap",
    FactorCategory.ACCESSIBILITY: "Confirm accommodation options with the employer",
    FactorCategory.LOCATION: "Discuss relocation or a remote arrangement with the employer",
    FactorCategory.CULTURE: "Review the team's working culture to confirm fit",
    FactorCategory.COMPENSATION: "Clarify the compensation range early in the process",
}

PROFILE_HINTS = {
    FactorCategory.SKILLS: "Complete the profile: add skills with proficiency levels",
    FactorCategory.EXPERIENCE: "Complete the profile: add years of experience",
    FactorCategory.ACCESSIBILITY: "Complete the profile: declare accommodation needs",
    FactorCategory.LOCATION: "Complete the profile: add a location or remote preference",
    FactorCategory.CULTURE: "Complete the profile: add work culture preferences",
    FactorCategory.COMPENSATION: "Complete the profile: add an expected compensation range",
}


def _order(factor: Factor) -> int:
    return CATEGORY_ORDER.index(factor.category)


class ExplanationGenerator:
    """Builds reasons and recommendations from weighted factors."""

    def __init__(self, config: ScorerConfig):
        self.config = config

    def _impact(self, factor: Factor) -> float:
        return factor.impact(self.config.neutral_score)

    def _phrase(self, factor: Factor, negative: bool) -> str:
        label = CATEGORY_LABELS[factor.category]
        if negative:
            return f"{label} concern: {factor.detail}"
        return f"{label}: {factor.detail}"

    def _is_negative(self, factor: Factor) -> bool:
        return not factor.insufficient_data and factor.raw_score < self.config.neutral_score

    def reasons(self, factors: List[Factor]) -> List[str]:
        positives = sorted(
            (f for f in factors if f.positive and not f.insufficient_data),
            key=lambda f: (-abs(self._impact(f)), _order(f))
        )
        negatives = sorted(
            (f for f in factors if self._is_negative(f)),
            key=lambda f: (self._impact(f), _order(f))
        )

        chosen: List[Factor] = positives[:MAX_POSITIVE_REASONS]
        if negatives:
            chosen.append(negatives[0])

        if len(chosen) < MIN_REASONS:
            rest = sorted(
                (f for f in factors if f not in chosen),
                key=lambda f: (f.insufficient_data, -abs(self._impact(f)), _order(f))
            )
            for f in rest:
                if len(chosen) >= MIN_REASONS:
                    break
                chosen.append(f)

        return [self._phrase(f, self._is_negative(f)) for f in chosen]

    def recommendations(self, factors: List[Factor]) -> List[str]:
        recs: List[str] = []

        def add(text: str):
            if text not in recs and len(recs) < MAX_RECOMMENDATIONS:
                recs.append(text)

        scored = [f for f in factors if not f.insufficient_data]
        weakest = min(scored, key=lambda f: (f.raw_score, _order(f)), default=None)

        accessibility = next(
            (f for f in factors if f.category == FactorCategory.ACCESSIBILITY), None
        )
        accessibility_gap = (
            accessibility is not None
            and not accessibility.insufficient_data
            and accessibility.raw_score < self.config.neutral_score
        )

        if accessibility_gap:
            add(f"Accessibility gap: {RECOMMENDATION_TEMPLATES[FactorCategory.ACCESSIBILITY].lower()} "
                f"({accessibility.detail})")

        if (
            weakest is not None
            and weakest.raw_score < self.config.positive_threshold
            and not (accessibility_gap and weakest.category == FactorCategory.ACCESSIBILITY)
        ):
            add(RECOMMENDATION_TEMPLATES[weakest.category])

        for f in factors:
            if f.insufficient_data:
                add(PROFILE_HINTS[f.category])

        return recs

    def explain(self, factors: List[Factor]) -> Tuple[List[str], List[str]]:
        return self.reasons(factors), self.recommendations(factors)
