#!/usr/bin/env python3
"""
Compensation Factor - offered band against the candidate's desired band.

- job max reaches the candidate's max: 100
- bands overlap: compensation_floor_score..100 by how far into the desired band the offer reaches
- job max below the candidate min: decays from compensation_floor_score to 0
  as the shortfall approaches compensation_max_shortfall (fraction of candidate min)
"""

from core.config_loader import ScorerConfig
from core.models import Candidate, Job
from core.scorer.models import FactorScore


def score_compensation(candidate: Candidate, job: Job, config: ScorerConfig) -> FactorScore:
    wanted = candidate.compensation
    offered = job.compensation

    if wanted is None or offered is None:
        side = "candidate" if wanted is None else "job"
        return FactorScore.neutral(f"{side} compensation unknown", config)
    if wanted.currency.upper() != offered.currency.upper():
        return FactorScore.neutral(
            f"currency mismatch ({wanted.currency} vs {offered.currency})", config
        )

    floor = config.compensation_floor_score
    band = f"{offered.min:,.0f}-{offered.max:,.0f} {offered.currency}"

    if offered.max >= wanted.max:
        return FactorScore.bounded(100.0, f"offer {band} meets the desired range", config)

    if offered.max >= wanted.min:
        span = wanted.max - wanted.min
        reach = (offered.max - wanted.min) / span if span > 0 else 1.0
        return FactorScore.bounded(
            floor + (100.0 - floor) * reach,
            f"offer {band} overlaps the desired range",
            config
        )

    if wanted.min <= 0:
        return FactorScore.bounded(floor, f"offer {band}", config)

    shortfall = (wanted.min - offered.max) / wanted.min
    score = floor * max(0.0, 1.0 - shortfall / config.compensation_max_shortfall)
    return FactorScore.bounded(
        score,
        f"offer {band} is {shortfall:.0%} below the desired minimum",
        config
    )
