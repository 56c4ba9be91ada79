#!/usr/bin/env python3
"""
Location Factor - city/region match, with remote work treated as a full match.
"""

from typing import Optional

from core.config_loader import ScorerConfig
from core.models import Candidate, Job, Location, WorkMode
from core.scorer.models import FactorScore


def _norm(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().lower()
    return value or None


def score_location(candidate: Candidate, job: Job, config: ScorerConfig) -> FactorScore:
    if job.offers_remote and WorkMode.REMOTE in candidate.work_modes:
        return FactorScore.bounded(100.0, "remote work on both sides", config)

    cand_loc: Optional[Location] = candidate.location
    job_loc: Optional[Location] = job.location
    if cand_loc is None or job_loc is None:
        side = "candidate" if cand_loc is None else "job"
        return FactorScore.neutral(f"{side} location unknown", config)

    cand_city, job_city = _norm(cand_loc.city), _norm(job_loc.city)
    cand_region, job_region = _norm(cand_loc.region), _norm(job_loc.region)

    if (cand_city is None or job_city is None) and (cand_region is None or job_region is None):
        return FactorScore.neutral("city and region missing", config)

    if cand_city and cand_city == job_city:
        return FactorScore.bounded(100.0, f"same city ({job_loc.city})", config)

    if cand_region and cand_region == job_region:
        return FactorScore.bounded(
            config.location_same_region_score,
            f"same region ({job_loc.region})",
            config
        )

    return FactorScore.bounded(
        0.0,
        f"job in {job_loc.city or job_loc.region}, candidate in {cand_loc.city or cand_loc.region}",
        config
    )
