#!/usr/bin/env python3
"""
Scoring Models - Data structures for factor scores and scored pairs.
"""

from enum import Enum
from typing import List, Dict, Any
from dataclasses import dataclass, field

from core.config_loader import ScorerConfig

INSUFFICIENT_DATA = "insufficient data"


class FactorCategory(str, Enum):
    """Compatibility dimensions, in the order factors are reported."""
    SKILLS = "skills"
    EXPERIENCE = "experience"
    ACCESSIBILITY = "accessibility"
    LOCATION = "location"
    CULTURE = "culture"
    COMPENSATION = "compensation"


CATEGORY_ORDER: List[FactorCategory] = list(FactorCategory)

CATEGORY_LABELS: Dict[FactorCategory, str] = {
    FactorCategory.SKILLS: "Skills",
    FactorCategory.EXPERIENCE: "Experience",
    FactorCategory.ACCESSIBILITY: "Accessibility",
    FactorCategory.LOCATION: "Location",
    FactorCategory.CULTURE: "Culture fit",
    FactorCategory.COMPENSATION: "Compensation",
}


@dataclass(frozen=True)
class FactorScore:
    """Output of a single factor scorer."""
    score: float
    detail: str
    positive: bool
    insufficient_data: bool = False

    @classmethod
    def bounded(cls, score: float, detail: str, config: ScorerConfig) -> "FactorScore":
        """Clamp to [0, 100], round to 2 decimals and derive the positive flag."""
        value = round(max(0.0, min(100.0, float(score))), 2)
        return cls(
            score=value,
            detail=detail,
            positive=value >= config.positive_threshold,
        )

    @classmethod
    def neutral(cls, reason: str, config: ScorerConfig) -> "FactorScore":
        """Neutral default used whenever an optional input is missing."""
        return cls(
            score=config.neutral_score,
            detail=f"{INSUFFICIENT_DATA}: {reason}",
            positive=False,
            insufficient_data=True,
        )


@dataclass
class Factor:
    """A weighted factor as stored on a match result."""
    category: FactorCategory
    weight: float
    raw_score: float
    detail: str
    positive: bool
    insufficient_data: bool = False

    def impact(self, neutral_score: float = 50.0) -> float:
        return self.weight * (self.raw_score - neutral_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category.value,
            'weight': self.weight,
            'raw_score': self.raw_score,
            'detail': self.detail,
            'positive': self.positive,
            'insufficient_data': self.insufficient_data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Factor":
        return cls(
            category=FactorCategory(data['category']),
            weight=float(data['weight']),
            raw_score=float(data['raw_score']),
            detail=data.get('detail', ''),
            positive=bool(data.get('positive', False)),
            insufficient_data=bool(data.get('insufficient_data', False)),
        )


@dataclass
class ScoredPair:
    """Complete scoring output for one (candidate, job) pair, before persistence."""
    candidate_id: str
    job_id: str
    score: int
    confidence: float
    factors: List[Factor] = field(default_factory=list)
    weights: Dict[str, float] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def factor(self, category: FactorCategory) -> Factor:
        for f in self.factors:
            if f.category == category:
                return f
        raise KeyError(category)
