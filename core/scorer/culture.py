#!/usr/bin/env python3
"""
Culture Factor - overlap coefficient of culture tags.
"""

from core.config_loader import ScorerConfig
from core.models import Candidate, Job
from core.scorer.models import FactorScore


def score_culture(candidate: Candidate, job: Job, config: ScorerConfig) -> FactorScore:
    cand_tags = {t.strip().lower() for t in candidate.culture_tags if t.strip()}
    job_tags = {t.strip().lower() for t in job.culture_tags if t.strip()}

    if not cand_tags or not job_tags:
        side = "candidate" if not cand_tags else "job"
        return FactorScore.neutral(f"{side} has no culture tags", config)

    shared = cand_tags & job_tags
    score = 100.0 * len(shared) / min(len(cand_tags), len(job_tags))
    if shared:
        detail = f"shares {len(shared)} values: {', '.join(sorted(shared)[:3])}"
    else:
        detail = "no shared culture values"
    return FactorScore.bounded(score, detail, config)
