#!/usr/bin/env python3
"""
Score Aggregation - weighted overall score and confidence.

score      = clamp(round(sum(w * raw)), 0, 100)
confidence = floor + (1 - floor) * completeness * agreement
  completeness = share of factors with sufficient data
  agreement    = 1 - min(std(raw) / 50, 1)

Confidence is reported alongside the score and never changes it.
"""

from typing import Dict, List, Mapping, Tuple

import numpy as np

from core.config_loader import ScorerConfig
from core.scorer.models import CATEGORY_ORDER, Factor, FactorCategory, FactorScore


def weighted_score(factors: List[Factor]) -> int:
    total = sum(f.weight * f.raw_score for f in factors)
    return int(max(0, min(100, round(total))))


def confidence(factors: List[Factor], config: ScorerConfig) -> float:
    if not factors:
        return config.confidence_floor
    raw = np.array([f.raw_score for f in factors], dtype=float)
    completeness = sum(1 for f in factors if not f.insufficient_data) / len(factors)
    agreement = 1.0 - min(float(np.std(raw)) / 50.0, 1.0)
    floor = config.confidence_floor
    value = floor + (1.0 - floor) * completeness * agreement
    return round(max(0.0, min(1.0, value)), 4)


def aggregate(
    factor_scores: Mapping[FactorCategory, FactorScore],
    weights: Mapping[FactorCategory, float],
    config: ScorerConfig
) -> Tuple[int, float, List[Factor]]:
    """
    Combine raw factor scores into (score, confidence, ordered factors).

    Args:
        factor_scores: One FactorScore per category
        weights: Normalized weight per category
        config: ScorerConfig (confidence floor)

    Returns:
        (score 0-100, confidence 0-1, factors in category order)
    """
    factors: List[Factor] = []
    for category in CATEGORY_ORDER:
        fs = factor_scores[category]
        factors.append(Factor(
            category=category,
            weight=float(weights.get(category, 0.0)),
            raw_score=fs.score,
            detail=fs.detail,
            positive=fs.positive,
            insufficient_data=fs.insufficient_data,
        ))
    return weighted_score(factors), confidence(factors, config), factors


def factor_breakdown(factors: List[Factor]) -> Dict[str, float]:
    """Raw score per category name, for logging and export."""
    return {f.category.value: f.raw_score for f in factors}
