#!/usr/bin/env python3
"""
Skills Factor - token-normalized overlap between candidate and required skills.

Each matched required skill credits proficiency/100 plus a bonus when the
skill is verified (capped at a full credit). Unmatched required skills credit
nothing, so they pull the ceiling down.
"""

from typing import List, Optional, FrozenSet, Tuple
import logging
import re

from core.config_loader import ScorerConfig
from core.models import Candidate, Job, Skill
from core.scorer.models import FactorScore

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9+#]+")


def normalize_skill(name: str) -> str:
    """Lower-case and collapse punctuation/whitespace: 'Distributed-Systems' -> 'distributed systems'."""
    return _NON_ALNUM.sub(" ", name.lower()).strip()


def skill_tokens(name: str) -> FrozenSet[str]:
    return frozenset(normalize_skill(name).split())


def _token_similarity(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


def find_matching_skill(
    required: str,
    skills: List[Skill],
    threshold: float
) -> Optional[Skill]:
    """Return the candidate skill that best matches a required skill name, if any.

    Exact normalized matches win; otherwise the highest token Jaccard at or
    above threshold. Ties go to the higher proficiency, then the verified one.
    """
    target = normalize_skill(required)
    target_tokens = skill_tokens(required)

    best: Optional[Tuple[float, float, bool, Skill]] = None
    for skill in skills:
        if normalize_skill(skill.name) == target:
            similarity = 1.0
        else:
            similarity = _token_similarity(target_tokens, skill_tokens(skill.name))
            if similarity < threshold:
                continue
        key = (similarity, skill.proficiency, skill.verified, skill)
        if best is None or key[:3] > best[:3]:
            best = key

    return best[3] if best else None


def score_skills(candidate: Candidate, job: Job, config: ScorerConfig) -> FactorScore:
    required = [r for r in job.required_skills if normalize_skill(r)]
    if not required:
        return FactorScore.neutral("job lists no required skills", config)
    if not candidate.skills:
        return FactorScore.neutral("candidate lists no skills", config)

    total_credit = 0.0
    matched: List[str] = []
    missing: List[str] = []
    verified_count = 0

    for name in required:
        skill = find_matching_skill(name, candidate.skills, config.skill_token_match_threshold)
        if skill is None:
            missing.append(name)
            continue
        credit = skill.proficiency / 100.0
        if skill.verified:
            credit += config.skill_verified_bonus
            verified_count += 1
        total_credit += min(1.0, credit)
        matched.append(name)

    score = 100.0 * total_credit / len(required)

    detail = f"matches {len(matched)}/{len(required)} required skills"
    if verified_count:
        detail += f" ({verified_count} verified)"
    if missing:
        detail += f"; missing: {', '.join(missing[:3])}"

    logger.debug(f"Skills {candidate.id}/{job.id}: {score:.1f} ({detail})")
    return FactorScore.bounded(score, detail, config)
