#!/usr/bin/env python3
"""
Accessibility Factor - coverage of the candidate's accommodation needs.

A need is covered when the job declares the matching accessibility feature.
Needs in ScorerConfig.remote_satisfiable_needs are also covered when the job
offers remote work. Zero coverage collapses to a low floor so that an
excellent skills match can never hide a job the candidate cannot work in.
"""

from typing import List, Set
import logging

from core.config_loader import ScorerConfig
from core.models import AccommodationType, Candidate, Job
from core.scorer.models import FactorScore

logger = logging.getLogger(__name__)


def _remote_satisfiable(config: ScorerConfig) -> Set[str]:
    return {n.strip().lower() for n in config.remote_satisfiable_needs}


def covered_needs(candidate: Candidate, job: Job, config: ScorerConfig) -> List[AccommodationType]:
    """Needs satisfied either by a declared feature or by the remote override."""
    needs = candidate.accommodation_needs or set()
    remote_ok = _remote_satisfiable(config) if job.offers_remote else set()
    return sorted(
        (n for n in needs if n in job.accessibility_features or n.value in remote_ok),
        key=lambda n: n.value
    )


def score_accessibility(candidate: Candidate, job: Job, config: ScorerConfig) -> FactorScore:
    needs = candidate.accommodation_needs
    if not needs:
        # No declared needs: nothing can be uncovered
        return FactorScore.bounded(100.0, "no accommodation needs declared", config)

    covered = covered_needs(candidate, job, config)
    uncovered = sorted((n.value for n in needs if n not in covered))

    if not covered:
        # Partial credit only when the job offers something adjacent
        override = job.offers_remote or AccommodationType.FLEXIBLE_SCHEDULE in job.accessibility_features
        if override:
            return FactorScore.bounded(
                config.accessibility_override_partial,
                f"none of {len(needs)} needs covered, remote or flexible work available; missing: {', '.join(uncovered)}",
                config
            )
        return FactorScore.bounded(
            config.accessibility_zero_coverage_floor,
            f"none of {len(needs)} needs covered; missing: {', '.join(uncovered)}",
            config
        )

    score = 100.0 * len(covered) / len(needs)
    detail = f"covers {len(covered)}/{len(needs)} accommodation needs"
    if uncovered:
        detail += f"; missing: {', '.join(uncovered)}"

    logger.debug(f"Accessibility {candidate.id}/{job.id}: {score:.1f}")
    return FactorScore.bounded(score, detail, config)
