#!/usr/bin/env python3
"""
Matcher Service - scores candidate/job pairs and persists the results.

Flow for one pair:
1. Fetch candidate and job snapshots from the stores
2. ScoringService runs the factor scorers and aggregates score + confidence
3. ExplanationGenerator attaches reasons and recommendations
4. MatchRepository upserts the result (status-guarded)

Used directly for single and job-wide matching, and by the MatchingQueue
workers for bulk matching. Each repository call runs in its own unit of
work, so the service can be shared across threads.
"""
from typing import Any, List, Dict, Optional, Mapping, Tuple
import logging
import time

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from core.config_loader import MatchingConfig
from core.exceptions import MatchingException
from core.matcher.explainability import ExplanationGenerator
from core.matcher.models import MatchResult, MatchStatus
from core.models import CandidateCriteria, MatchCriteria, MatchingPreferences, parse_preferences
from core.scorer.models import FactorCategory, ScoredPair
from core.scorer.service import ScoringService
from core.scorer.weighting import WeightingPolicy, weights_to_dict
from core.stores import CandidateStore, JobStore
from database.repositories.match import record_to_result
from database.uow import match_uow

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS_SETTING = "matching.default_weights"
PREFERENCES_SETTING = "matching.preferences.{user_id}"


def effective_overrides(
    criteria: CandidateCriteria,
    preferences: Optional[MatchingPreferences]
) -> Optional[Mapping[str, object]]:
    """Request overrides win; otherwise the user's custom weights, if any."""
    if criteria.weight_overrides is not None or preferences is None:
        return criteria.weight_overrides
    return preferences.custom_weights


class MatcherService:
    """
    Service for scoring and storing matches.

    Designed to be independent of the queue - the queue only decides when
    and in which order pairs are processed.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        candidates: CandidateStore,
        jobs: JobStore,
        scoring: ScoringService,
        weighting: WeightingPolicy,
        config: MatchingConfig
    ):
        """
        Initialize matcher service with dependencies.

        Args:
            session_factory: sessionmaker used for one unit of work per operation
            candidates: CandidateStore for candidate snapshots
            jobs: JobStore for job snapshots
            scoring: ScoringService with the factor scorers
            weighting: WeightingPolicy holding the default weights
            config: MatchingConfig with queue timeouts
        """
        self.session_factory = session_factory
        self.candidates = candidates
        self.jobs = jobs
        self.scoring = scoring
        self.weighting = weighting
        self.config = config
        self.explainer = ExplanationGenerator(config.scorer)

    # Scoring

    def resolve_weights(self, overrides: Optional[Mapping[str, object]] = None) -> Dict[FactorCategory, float]:
        return self.weighting.resolve(overrides)

    def evaluate(
        self,
        candidate_id: str,
        job_id: str,
        weights: Mapping[FactorCategory, float],
        deadline: Optional[float] = None
    ) -> ScoredPair:
        """Score and explain one pair without persisting it."""
        candidate = self.candidates.get(candidate_id)
        job = self.jobs.get(job_id)
        scored = self.scoring.score_pair(candidate, job, weights, deadline=deadline)
        scored.reasons, scored.recommendations = self.explainer.explain(scored.factors)
        return scored

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_fixed(0.05),
        retry=retry_if_exception_type(IntegrityError),
        reraise=True
    )
    def persist(self, scored: ScoredPair) -> MatchResult:
        """Upsert a scored pair. Retried when a concurrent writer took the same version."""
        with match_uow(self.session_factory) as repo:
            record = repo.matches.upsert(scored)
            return record_to_result(record)

    def process_pair(
        self,
        candidate_id: str,
        job_id: str,
        weights: Mapping[FactorCategory, float],
        deadline: Optional[float] = None
    ) -> MatchResult:
        scored = self.evaluate(candidate_id, job_id, weights, deadline=deadline)
        return self.persist(scored)

    def match_single(
        self,
        candidate_id: str,
        job_id: str,
        weight_overrides: Optional[Mapping[str, object]] = None,
        timeout_seconds: Optional[float] = None
    ) -> MatchResult:
        """
        Score one pair inline, bounded by the single-request timeout.

        Raises:
            InvalidCriteria: Malformed weight overrides
            NotFound: Candidate or job missing
            ScorerTimeout: A scorer exceeded its bound or the deadline passed
        """
        weights = self.resolve_weights(weight_overrides)
        timeout = timeout_seconds if timeout_seconds is not None else self.config.queue.single_timeout_seconds
        deadline = time.monotonic() + timeout
        result = self.process_pair(candidate_id, job_id, weights, deadline=deadline)
        logger.info(f"Matched candidate {candidate_id} to job {job_id}: score {result.score}")
        return result

    def candidate_ids_for(
        self,
        criteria: CandidateCriteria,
        preferences: Optional[MatchingPreferences] = None
    ) -> List[str]:
        if criteria.candidate_ids:
            ids = list(dict.fromkeys(criteria.candidate_ids))
        else:
            ids = self.candidates.list_ids()
        if preferences is not None and preferences.excluded_candidates:
            excluded = set(preferences.excluded_candidates)
            ids = [c for c in ids if c not in excluded]
        return ids

    def run_job_matching(self, criteria: MatchCriteria) -> List[MatchResult]:
        """
        Match every candidate in the filter (or all candidates) against one job.

        Pairs that fail are logged and skipped. The min_score filter only
        narrows the returned list; every successful pair is persisted.
        With a user_id the user's custom weights and exclusions apply.

        Returns:
            Results sorted by score, highest first
        """
        preferences = self.preferences_for(criteria)
        weights = self.resolve_weights(effective_overrides(criteria, preferences))
        self.jobs.get(criteria.job_id)

        if preferences is not None and criteria.job_id in preferences.excluded_jobs:
            logger.info(f"Job {criteria.job_id} is excluded by user {criteria.user_id}; nothing to match")
            return []

        results: List[MatchResult] = []
        failed = 0
        for candidate_id in self.candidate_ids_for(criteria, preferences):
            try:
                results.append(self.process_pair(candidate_id, criteria.job_id, weights))
            except MatchingException as e:
                failed += 1
                logger.warning(f"Skipping candidate {candidate_id} for job {criteria.job_id}: {e}")

        logger.info(
            f"Job {criteria.job_id}: matched {len(results)} candidates ({failed} failed)"
        )

        if criteria.min_score is not None:
            results = [r for r in results if r.score >= criteria.min_score]
        results.sort(key=lambda r: (-r.score, r.candidate_id))
        return results

    def refresh(
        self,
        match_id: str,
        weight_overrides: Optional[Mapping[str, object]] = None
    ) -> MatchResult:
        """Re-evaluate a match from fresh snapshots, stored as a new version."""
        with match_uow(self.session_factory) as repo:
            prior = record_to_result(repo.matches.get(match_id))

        if weight_overrides is None and prior.weights:
            weights = self.resolve_weights(prior.weights)
        else:
            weights = self.resolve_weights(weight_overrides)

        scored = self.evaluate(prior.candidate_id, prior.job_id, weights)
        with match_uow(self.session_factory) as repo:
            return record_to_result(repo.matches.refresh(match_id, scored))

    # Records

    def get_match(self, match_id: str) -> MatchResult:
        with match_uow(self.session_factory) as repo:
            return record_to_result(repo.matches.get(match_id))

    def list_versions(self, match_id: str) -> List[MatchResult]:
        with match_uow(self.session_factory) as repo:
            record = repo.matches.get(match_id)
            return [
                record_to_result(r)
                for r in repo.matches.list_versions(record.candidate_id, record.job_id)
            ]

    def list_for_job(
        self,
        job_id: str,
        page: int = 1,
        page_size: int = 20,
        min_score: Optional[int] = None,
        status: Optional[MatchStatus] = None
    ) -> Tuple[List[MatchResult], int]:
        with match_uow(self.session_factory) as repo:
            records, total = repo.matches.list_for_job(job_id, page, page_size, min_score, status)
            return [record_to_result(r) for r in records], total

    def list_for_candidate(
        self,
        candidate_id: str,
        page: int = 1,
        page_size: int = 20,
        min_score: Optional[int] = None,
        status: Optional[MatchStatus] = None
    ) -> Tuple[List[MatchResult], int]:
        with match_uow(self.session_factory) as repo:
            records, total = repo.matches.list_for_candidate(candidate_id, page, page_size, min_score, status)
            return [record_to_result(r) for r in records], total

    def update_status(self, match_id: str, status: MatchStatus) -> MatchResult:
        with match_uow(self.session_factory) as repo:
            result = record_to_result(repo.matches.update_status(match_id, status))
        logger.info(f"Match {match_id} status -> {status.value}")
        return result

    def reopen(self, match_id: str) -> MatchResult:
        with match_uow(self.session_factory) as repo:
            return record_to_result(repo.matches.reopen(match_id))

    # Default weights

    def load_default_weights(self) -> bool:
        """Apply operator-saved default weights, if any. Returns True when applied."""
        with match_uow(self.session_factory) as repo:
            saved = repo.settings.get_json(DEFAULT_WEIGHTS_SETTING)
        if not saved:
            return False
        self.weighting.update_defaults(saved)
        return True

    def update_default_weights(self, weights: Mapping[str, object]) -> Dict[str, float]:
        resolved = weights_to_dict(self.weighting.resolve(weights))
        with match_uow(self.session_factory) as repo:
            repo.settings.set_json(DEFAULT_WEIGHTS_SETTING, resolved)
        self.weighting.update_defaults(resolved)
        return resolved

    def apply_weight_preset(self, preset_name: str) -> Dict[str, float]:
        resolved = weights_to_dict(self.weighting.apply_preset(preset_name))
        with match_uow(self.session_factory) as repo:
            repo.settings.set_json(DEFAULT_WEIGHTS_SETTING, resolved)
        return resolved

    # Per-user preferences

    def get_preferences(self, user_id: str) -> MatchingPreferences:
        """Saved preferences for a user, or the defaults if none were saved."""
        with match_uow(self.session_factory) as repo:
            saved = repo.settings.get_json(PREFERENCES_SETTING.format(user_id=user_id))
        if not saved:
            return MatchingPreferences()
        return MatchingPreferences.model_validate(saved)

    def update_preferences(self, user_id: str, changes: Mapping[str, Any]) -> MatchingPreferences:
        """
        Merge changes into a user's preferences and save them.

        Raises:
            InvalidCriteria: Unknown fields, out-of-range values or malformed custom weights
        """
        merged = self.get_preferences(user_id).model_dump()
        merged.update(changes)
        preferences = parse_preferences(merged)
        if preferences.custom_weights is not None:
            self.resolve_weights(preferences.custom_weights)

        with match_uow(self.session_factory) as repo:
            repo.settings.set_json(PREFERENCES_SETTING.format(user_id=user_id), preferences.model_dump())
        logger.info(f"Updated matching preferences for user {user_id}")
        return preferences

    def preferences_for(self, criteria: CandidateCriteria) -> Optional[MatchingPreferences]:
        if not criteria.user_id:
            return None
        return self.get_preferences(criteria.user_id)
