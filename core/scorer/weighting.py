#!/usr/bin/env python3
"""
Weighting Policy - resolves the per-request factor weight vector.

Overrides are merged over the current defaults and the result is
renormalized to sum to 1. Defaults can be replaced at runtime by an
operator; feedback statistics never change them automatically.
"""

from typing import Dict, Mapping, Optional
import logging
import math
import threading

from core.config_loader import WeightsConfig
from core.exceptions import InvalidCriteria
from core.scorer.models import CATEGORY_ORDER, FactorCategory

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-6

# Weight presets (renormalized on use)
WEIGHT_PRESETS: Dict[str, Dict[str, float]] = {
    "balanced": WeightsConfig().model_dump(),
    "accessibility_first": {
        "skills": 0.25, "experience": 0.15, "accessibility": 0.35,
        "location": 0.10, "culture": 0.10, "compensation": 0.05,
    },
    "skills_first": {
        "skills": 0.45, "experience": 0.25, "accessibility": 0.15,
        "location": 0.05, "culture": 0.05, "compensation": 0.05,
    },
}


def _validated(raw: Mapping[str, object]) -> Dict[FactorCategory, float]:
    """Check keys and values of a (partial) weight mapping."""
    valid_keys = {c.value for c in CATEGORY_ORDER}
    parsed: Dict[FactorCategory, float] = {}
    for key, value in raw.items():
        if key not in valid_keys:
            raise InvalidCriteria(
                f"Unknown weight category '{key}'. Valid options: {', '.join(sorted(valid_keys))}"
            )
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidCriteria(f"Weight for '{key}' must be a number, got {value!r}")
        value = float(value)
        if not math.isfinite(value):
            raise InvalidCriteria(f"Weight for '{key}' must be finite, got {value}")
        if value < 0:
            raise InvalidCriteria(f"Weight for '{key}' must be non-negative, got {value}")
        parsed[FactorCategory(key)] = value
    return parsed


def normalize_weights(weights: Mapping[FactorCategory, float]) -> Dict[FactorCategory, float]:
    total = sum(weights.get(c, 0.0) for c in CATEGORY_ORDER)
    if total <= 0:
        raise InvalidCriteria("Weights must not all be zero")
    return {c: weights.get(c, 0.0) / total for c in CATEGORY_ORDER}


class WeightingPolicy:
    """Thread-safe holder of the default weight vector."""

    def __init__(self, defaults: Optional[WeightsConfig] = None):
        defaults = defaults or WeightsConfig()
        self._lock = threading.Lock()
        self._defaults = normalize_weights(_validated(defaults.model_dump()))

    @property
    def defaults(self) -> Dict[FactorCategory, float]:
        with self._lock:
            return dict(self._defaults)

    def resolve(self, overrides: Optional[Mapping[str, object]] = None) -> Dict[FactorCategory, float]:
        """
        Merge overrides over the defaults and renormalize.

        Args:
            overrides: Partial mapping of category name -> non-negative weight.

        Returns:
            Weight per category, in category order, summing to 1.

        Raises:
            InvalidCriteria: Unknown category, non-numeric, non-finite or
                negative value, or every weight zero after merging.
        """
        merged = self.defaults
        if overrides:
            merged.update(_validated(overrides))
        return normalize_weights(merged)

    def update_defaults(self, weights: Mapping[str, object]) -> Dict[FactorCategory, float]:
        """Replace the defaults; categories not given keep their current weight."""
        new_defaults = self.resolve(weights)
        with self._lock:
            self._defaults = new_defaults
        logger.info(
            "Default weights updated: "
            + ", ".join(f"{c.value}={w:.3f}" for c, w in new_defaults.items())
        )
        return dict(new_defaults)

    def apply_preset(self, preset_name: str) -> Dict[FactorCategory, float]:
        preset_name = preset_name.lower()
        if preset_name not in WEIGHT_PRESETS:
            raise InvalidCriteria(
                f"Invalid preset '{preset_name}'. "
                f"Valid options: {', '.join(WEIGHT_PRESETS.keys())}"
            )
        new_defaults = normalize_weights(_validated(WEIGHT_PRESETS[preset_name]))
        with self._lock:
            self._defaults = new_defaults
        logger.info(f"Applied weight preset '{preset_name}'")
        return dict(new_defaults)


def weights_to_dict(weights: Mapping[FactorCategory, float]) -> Dict[str, float]:
    return {c.value: float(weights[c]) for c in CATEGORY_ORDER if c in weights}
