#!/usr/bin/env python3
"""
Scoring Service - runs the factor scorers for one (candidate, job) pair.

Each scorer is executed on a shared thread pool so it can be bounded in
time: a scorer that exceeds min(scorer_timeout_seconds, remaining deadline)
raises ScorerTimeout, which fails only the pair being scored.

A running scorer cannot be cancelled, so after a timeout the pool is
retired and replaced; the stuck thread finishes on the old pool while
later pairs get fresh threads.
"""

from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Dict, Mapping, Optional, Tuple
import logging
import threading
import time

from core.config_loader import ScorerConfig
from core.exceptions import ScorerTimeout
from core.models import Candidate, Job
from core.scorer.aggregation import aggregate, factor_breakdown
from core.scorer.factors import DEFAULT_SCORERS, FactorScorer
from core.scorer.models import CATEGORY_ORDER, FactorCategory, FactorScore, ScoredPair
from core.scorer.weighting import weights_to_dict

logger = logging.getLogger(__name__)


class ScoringService:
    """
    Scores candidate/job pairs.

    Designed to be shared by the inline single-match path and every queue
    worker; it holds no per-pair state.
    """

    def __init__(
        self,
        config: ScorerConfig,
        scorers: Optional[Mapping[FactorCategory, FactorScorer]] = None
    ):
        self.config = config
        self.scorers: Dict[FactorCategory, FactorScorer] = dict(DEFAULT_SCORERS)
        if scorers:
            self.scorers.update(scorers)
        self._executor_lock = threading.Lock()
        self._executor = self._new_executor()

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=self.config.scorer_threads,
            thread_name_prefix="factor-scorer"
        )

    def _retire_executor(self, executor: ThreadPoolExecutor):
        """Replace a pool holding a stuck scorer. No-op if another pair already replaced it."""
        with self._executor_lock:
            if self._executor is not executor:
                return
            self._executor = self._new_executor()
        # Queued work from other pairs still runs on the old pool
        executor.shutdown(wait=False)
        logger.warning("Replaced factor scorer pool after a scorer timeout")

    def _submit(self, fn, *args) -> Tuple[ThreadPoolExecutor, Future]:
        while True:
            with self._executor_lock:
                executor = self._executor
            try:
                return executor, executor.submit(fn, *args)
            except RuntimeError:
                # Retired between lookup and submit; retry on its replacement
                with self._executor_lock:
                    if self._executor is executor:
                        raise

    def shutdown(self):
        with self._executor_lock:
            executor = self._executor
        executor.shutdown(wait=False, cancel_futures=True)

    def _run_factor(
        self,
        category: FactorCategory,
        candidate: Candidate,
        job: Job,
        deadline: Optional[float]
    ) -> FactorScore:
        timeout = self.config.scorer_timeout_seconds
        if deadline is not None:
            timeout = min(timeout, deadline - time.monotonic())
        if timeout <= 0:
            raise ScorerTimeout(category.value, 0.0)

        executor, future = self._submit(self.scorers[category], candidate, job, self.config)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            logger.warning(
                f"{category.value} scorer timed out after {timeout:.2f}s "
                f"for candidate {candidate.id} / job {job.id}"
            )
            if not future.cancel():
                self._retire_executor(executor)
            raise ScorerTimeout(category.value, timeout)

    def score_factors(
        self,
        candidate: Candidate,
        job: Job,
        deadline: Optional[float] = None
    ) -> Dict[FactorCategory, FactorScore]:
        return {
            category: self._run_factor(category, candidate, job, deadline)
            for category in CATEGORY_ORDER
        }

    def score_pair(
        self,
        candidate: Candidate,
        job: Job,
        weights: Mapping[FactorCategory, float],
        deadline: Optional[float] = None
    ) -> ScoredPair:
        """
        Score one pair with already-resolved weights.

        Args:
            candidate: Candidate snapshot
            job: Job snapshot
            weights: Normalized weights from WeightingPolicy.resolve
            deadline: Optional time.monotonic() value by which scoring must finish

        Returns:
            ScoredPair with score, confidence and ordered factors (no explanations yet)

        Raises:
            ScorerTimeout: If any scorer exceeds its time bound
        """
        factor_scores = self.score_factors(candidate, job, deadline)
        score, conf, factors = aggregate(factor_scores, weights, self.config)

        logger.debug(
            f"Scored candidate {candidate.id} / job {job.id}: {score} "
            f"(confidence {conf:.2f}) {factor_breakdown(factors)}"
        )

        return ScoredPair(
            candidate_id=candidate.id,
            job_id=job.id,
            score=score,
            confidence=conf,
            factors=factors,
            weights=weights_to_dict(weights),
        )
