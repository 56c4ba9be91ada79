#!/usr/bin/env python3
"""
Scoring Module - deterministic factor scoring.

Public API:
- ScoringService: runs the factor scorers for a pair under time bounds
- WeightingPolicy: resolves per-request weights
- FactorCategory, FactorScore, Factor, ScoredPair: data structures

Modules:
- skills.py, experience.py, accessibility.py, location.py, culture.py,
  compensation.py: one pure scorer per category
- factors.py: category -> scorer registry
- weighting.py: default weights, overrides and presets
- aggregation.py: weighted score and confidence
- service.py: ScoringService orchestrator
"""

from core.scorer.models import FactorCategory, FactorScore, Factor, ScoredPair, CATEGORY_ORDER
from core.scorer.weighting import WeightingPolicy
from core.scorer.service import ScoringService

__all__ = [
    'ScoringService', 'WeightingPolicy',
    'FactorCategory', 'FactorScore', 'Factor', 'ScoredPair', 'CATEGORY_ORDER'
]
