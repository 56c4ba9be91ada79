#!/usr/bin/env python3
"""
Feedback Statistics - rolling match statistics and advisory insights.

Feedback is append-only and never changes a stored score. Statistics are
derived from the repository on request or on a schedule, and cached under a
key built from the scope (job ids) and the period. Recording feedback
invalidates every cached statistic.

Insights are signals for an operator; nothing here changes the weighting
defaults.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Dict, Any, Optional, Iterable, Tuple
import hashlib
import logging
import threading

import numpy as np
from sqlalchemy.orm import sessionmaker

from core.config_loader import StatsConfig, ScorerConfig
from core.exceptions import NotFound
from core.matcher.models import FeedbackOutcome, MatchFeedback, MatchStatus
from core.scorer.accessibility import covered_needs
from core.scorer.models import FactorCategory
from core.scorer.skills import normalize_skill
from core.stores import CandidateStore, JobStore
from database.uow import match_uow

logger = logging.getLogger(__name__)

STATS_NAMESPACE = "stats"


class InsightType(str, Enum):
    SKILL_DEMAND = "skill_demand"
    ACCESSIBILITY_COVERAGE = "accessibility_coverage"
    ALGORITHM_PERFORMANCE = "algorithm_performance"


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class AlgorithmPerformance:
    precision: float = 0.0
    recall: float = 0.0
    f1_score: float = 0.0
    threshold: int = 70
    support: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'precision': self.precision,
            'recall': self.recall,
            'f1_score': self.f1_score,
            'threshold': self.threshold,
            'support': self.support,
        }


@dataclass
class ImprovementSuggestion:
    area: str
    suggestion: str
    impact: str  # low | medium | high

    def to_dict(self) -> Dict[str, Any]:
        return {'area': self.area, 'suggestion': self.suggestion, 'impact': self.impact}


@dataclass
class MatchingStats:
    total_matches: int
    average_score: float
    success_rate: float
    algorithm_performance: AlgorithmPerformance
    status_breakdown: Dict[str, int] = field(default_factory=dict)
    score_distribution: Dict[str, int] = field(default_factory=dict)
    improvement_suggestions: List[ImprovementSuggestion] = field(default_factory=list)
    feedback_count: int = 0
    job_ids: Optional[List[str]] = None
    period_days: Optional[int] = None
    computed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_matches': self.total_matches,
            'average_score': self.average_score,
            'success_rate': self.success_rate,
            'algorithm_performance': self.algorithm_performance.to_dict(),
            'status_breakdown': dict(self.status_breakdown),
            'score_distribution': dict(self.score_distribution),
            'improvement_suggestions': [s.to_dict() for s in self.improvement_suggestions],
            'feedback_count': self.feedback_count,
            'job_ids': self.job_ids,
            'period_days': self.period_days,
            'computed_at': _iso(self.computed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchingStats":
        return cls(
            total_matches=data['total_matches'],
            average_score=data['average_score'],
            success_rate=data['success_rate'],
            algorithm_performance=AlgorithmPerformance(**data['algorithm_performance']),
            status_breakdown=data.get('status_breakdown', {}),
            score_distribution=data.get('score_distribution', {}),
            improvement_suggestions=[
                ImprovementSuggestion(**s) for s in data.get('improvement_suggestions', [])
            ],
            feedback_count=data.get('feedback_count', 0),
            job_ids=data.get('job_ids'),
            period_days=data.get('period_days'),
            computed_at=_parse(data.get('computed_at')),
        )


@dataclass
class MatchingInsight:
    type: InsightType
    title: str
    description: str
    data: Dict[str, Any] = field(default_factory=dict)
    trend: Trend = Trend.STABLE
    actionable: bool = False
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'title': self.title,
            'description': self.description,
            'data': self.data,
            'trend': self.trend.value,
            'actionable': self.actionable,
            'recommendations': list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchingInsight":
        return cls(
            type=InsightType(data['type']),
            title=data['title'],
            description=data['description'],
            data=data.get('data', {}),
            trend=Trend(data.get('trend', 'stable')),
            actionable=data.get('actionable', False),
            recommendations=data.get('recommendations', []),
        )


def score_distribution(scores: Iterable[int]) -> Dict[str, int]:
    dist = {'excellent': 0, 'good': 0, 'average': 0, 'poor': 0}
    for score in scores:
        if score >= 80:
            dist['excellent'] += 1
        elif score >= 60:
            dist['good'] += 1
        elif score >= 40:
            dist['average'] += 1
        else:
            dist['poor'] += 1
    return dist


def algorithm_performance(outcomes: Iterable[Tuple[int, str]], threshold: int) -> AlgorithmPerformance:
    """
    Precision/recall/F1 of "score >= threshold" as a predictor of a hire.

    Only hired (positive) and rejected (negative) outcomes are counted;
    no_response and withdrawn carry no signal.
    """
    tp = fp = fn = tn = 0
    for score, outcome in outcomes:
        if outcome == FeedbackOutcome.HIRED.value:
            actual = True
        elif outcome == FeedbackOutcome.REJECTED.value:
            actual = False
        else:
            continue
        predicted = score >= threshold
        if predicted and actual:
            tp += 1
        elif predicted:
            fp += 1
        elif actual:
            fn += 1
        else:
            tn += 1

    precision = tp / (tp + fp) if tp + fp else 0.0
    recall = tp / (tp + fn) if tp + fn else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
    return AlgorithmPerformance(
        precision=round(precision, 4),
        recall=round(recall, 4),
        f1_score=round(f1, 4),
        threshold=threshold,
        support=tp + fp + fn + tn,
    )


def _trend(current: float, previous: Optional[float], tolerance: float) -> Trend:
    if previous is None:
        return Trend.STABLE
    if current > previous + tolerance:
        return Trend.IMPROVING
    if current < previous - tolerance:
        return Trend.DECLINING
    return Trend.STABLE


def _scope_key(job_ids: Optional[Iterable[str]]) -> str:
    if not job_ids:
        return "all"
    joined = ",".join(sorted(set(job_ids)))
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()[:16]


class FeedbackStatsAggregator:
    """
    Computes MatchingStats and MatchingInsight lists from stored matches and feedback.

    Args:
        session_factory: sessionmaker for read-only units of work
        config: StatsConfig (threshold, windows, insight triggers)
        cache: RecordCache or LocalRecordCache; None disables caching
        jobs: JobStore, needed for skill-demand and accessibility insights
        candidates: CandidateStore, needed for accommodation coverage
        scorer_config: ScorerConfig used to evaluate remote-satisfiable needs
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        config: StatsConfig,
        cache=None,
        jobs: Optional[JobStore] = None,
        candidates: Optional[CandidateStore] = None,
        scorer_config: Optional[ScorerConfig] = None,
        cache_ttl_seconds: Optional[int] = None
    ):
        self.session_factory = session_factory
        self.config = config
        self.cache = cache
        self.jobs = jobs
        self.candidates = candidates
        self.scorer_config = scorer_config or ScorerConfig()
        self.cache_ttl_seconds = cache_ttl_seconds

    # Feedback

    def record_feedback(
        self,
        match_id: str,
        outcome: FeedbackOutcome,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> MatchFeedback:
        """Append feedback to a match and invalidate cached statistics."""
        with match_uow(self.session_factory) as repo:
            repo.matches.get(match_id)
            record = repo.feedback.add(match_id, outcome, rating, comment, user_id)
            feedback = MatchFeedback(
                id=record.id,
                match_id=record.match_id,
                outcome=FeedbackOutcome(record.outcome),
                rating=record.rating,
                comment=record.comment,
                user_id=record.user_id,
                created_at=record.created_at,
            )
        logger.info(f"Recorded {outcome.value} feedback for match {match_id}")
        self.invalidate()
        return feedback

    def invalidate(self) -> int:
        if self.cache is None:
            return 0
        return self.cache.invalidate_namespace(STATS_NAMESPACE)

    # Stats

    def _load_matches(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        job_ids: Optional[List[str]]
    ) -> List[Dict[str, Any]]:
        with match_uow(self.session_factory) as repo:
            return [
                {
                    'id': r.id,
                    'candidate_id': r.candidate_id,
                    'job_id': r.job_id,
                    'score': r.score,
                    'status': r.status,
                    'factors': list(r.factors or []),
                }
                for r in repo.matches.query(start=start, end=end, job_ids=job_ids)
            ]

    def _load_outcomes(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
        job_ids: Optional[List[str]]
    ) -> List[Tuple[int, str]]:
        with match_uow(self.session_factory) as repo:
            rows = repo.feedback.latest_outcomes(job_ids=job_ids, start=start, end=end)
        return [(score, outcome) for _, score, outcome in rows]

    def _suggestions(
        self,
        matches: List[Dict[str, Any]],
        performance: AlgorithmPerformance
    ) -> List[ImprovementSuggestion]:
        suggestions: List[ImprovementSuggestion] = []
        neutral = self.scorer_config.neutral_score

        if performance.support >= self.config.min_skill_support:
            if performance.f1_score < self.config.target_f1:
                suggestions.append(ImprovementSuggestion(
                    area="algorithm_calibration",
                    suggestion=(
                        f"F1 score {performance.f1_score:.2f} is below the {self.config.target_f1:.2f} target; "
                        "review the default weights against recent hire outcomes"
                    ),
                    impact="high",
                ))
            if performance.precision + 0.1 < performance.recall:
                suggestions.append(ImprovementSuggestion(
                    area="score_threshold",
                    suggestion="Many high-scoring matches are rejected; raise the weight of the decisive factors",
                    impact="medium",
                ))
            elif performance.recall + 0.1 < performance.precision:
                suggestions.append(ImprovementSuggestion(
                    area="score_threshold",
                    suggestion="Hires often score below the threshold; review under-weighted factors",
                    impact="medium",
                ))

        if matches:
            weak_access = 0
            insufficient = []
            for m in matches:
                factors = m['factors']
                for f in factors:
                    if (
                        f.get('category') == FactorCategory.ACCESSIBILITY.value
                        and not f.get('insufficient_data')
                        and f.get('raw_score', 100) < neutral
                    ):
                        weak_access += 1
                if factors:
                    insufficient.append(
                        sum(1 for f in factors if f.get('insufficient_data')) / len(factors)
                    )
            if weak_access / len(matches) > 0.25:
                suggestions.append(ImprovementSuggestion(
                    area="accessibility",
                    suggestion="Over a quarter of matches leave accommodation needs uncovered; "
                               "prioritise jobs declaring accessibility features",
                    impact="high",
                ))
            if insufficient and float(np.mean(insufficient)) > 0.3:
                suggestions.append(ImprovementSuggestion(
                    area="data_completeness",
                    suggestion="Profiles are often incomplete; ask candidates and employers to fill missing fields",
                    impact="medium",
                ))

        return suggestions

    def compute_stats(
        self,
        job_ids: Optional[List[str]] = None,
        period_days: Optional[int] = None,
        now: Optional[datetime] = None,
        use_cache: bool = True
    ) -> MatchingStats:
        """
        Compute statistics over current match versions.

        Args:
            job_ids: Optional scope; all jobs when omitted
            period_days: Only matches created in the last N days; all time when omitted
            now: Reference time (defaults to current UTC time)
            use_cache: Read from and write to the record cache

        Returns:
            MatchingStats
        """
        key = f"{STATS_NAMESPACE}:{period_days or 'all'}:{_scope_key(job_ids)}"
        if use_cache and self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return MatchingStats.from_dict(cached)

        now = now or datetime.now(timezone.utc)
        start = now - timedelta(days=period_days) if period_days else None
        end = now if period_days else None

        matches = self._load_matches(start, end, job_ids)
        outcomes = self._load_outcomes(start, end, job_ids)

        scores = np.array([m['score'] for m in matches], dtype=float)
        average = round(float(scores.mean()), 2) if scores.size else 0.0

        breakdown = {s.value: 0 for s in MatchStatus}
        for m in matches:
            breakdown[m['status']] = breakdown.get(m['status'], 0) + 1
        decided = breakdown[MatchStatus.ACCEPTED.value] + breakdown[MatchStatus.REJECTED.value]
        success_rate = round(breakdown[MatchStatus.ACCEPTED.value] / decided, 4) if decided else 0.0

        performance = algorithm_performance(outcomes, self.config.score_threshold)

        stats = MatchingStats(
            total_matches=len(matches),
            average_score=average,
            success_rate=success_rate,
            algorithm_performance=performance,
            status_breakdown=breakdown,
            score_distribution=score_distribution(m['score'] for m in matches),
            improvement_suggestions=self._suggestions(matches, performance),
            feedback_count=len(outcomes),
            job_ids=sorted(set(job_ids)) if job_ids else None,
            period_days=period_days,
            computed_at=now,
        )

        if use_cache and self.cache is not None:
            self.cache.set(key, stats.to_dict(), self.cache_ttl_seconds)

        logger.info(
            f"Computed stats: {stats.total_matches} matches, avg {stats.average_score}, "
            f"F1 {performance.f1_score:.2f} over {performance.support} outcomes"
        )
        return stats

    # Insights

    def _job_skill_counts(self, job_ids: Iterable[str]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for job in self._fetch_jobs(job_ids):
            for skill in {normalize_skill(s) for s in job.required_skills}:
                if skill:
                    counts[skill] = counts.get(skill, 0) + 1
        return counts

    def _fetch_jobs(self, job_ids: Iterable[str]):
        jobs = []
        for job_id in sorted(set(job_ids)):
            try:
                jobs.append(self.jobs.get(job_id))
            except NotFound:
                logger.debug(f"Job {job_id} no longer available for insights")
        return jobs

    def _skill_demand(self, current: List[Dict], previous: List[Dict]) -> List[MatchingInsight]:
        cur = self._job_skill_counts(m['job_id'] for m in current)
        prev = self._job_skill_counts(m['job_id'] for m in previous)

        rising = []
        for skill, count in cur.items():
            if count < self.config.min_skill_support:
                continue
            before = prev.get(skill, 0)
            increase = 100.0 * (count - before) / before if before else 100.0
            if increase >= self.config.skill_demand_increase_pct:
                rising.append((increase, count, skill, before))

        rising.sort(key=lambda r: (-r[0], -r[1], r[2]))
        insights = []
        for increase, count, skill, before in rising[:3]:
            insights.append(MatchingInsight(
                type=InsightType.SKILL_DEMAND,
                title=f"Rising demand for {skill}",
                description=(
                    f"{skill} is required by {count} matched jobs "
                    f"(+{increase:.0f}% over the previous {self.config.window_days} days)"
                ),
                data={'skill': skill, 'increase': round(increase, 1), 'current': count, 'previous': before},
                trend=Trend.IMPROVING,
                actionable=True,
                recommendations=[
                    f"Offer {skill} training to candidates",
                    f"Target candidates with {skill} in sourcing campaigns",
                ],
            ))
        return insights

    def _accessible_share(self, job_ids: Iterable[str]) -> Tuple[Optional[float], int]:
        jobs = self._fetch_jobs(job_ids)
        if not jobs:
            return None, 0
        accessible = sum(1 for j in jobs if j.accessibility_features or j.offers_remote)
        return accessible / len(jobs), len(jobs)

    def _uncovered_needs(self, matches: List[Dict]) -> Dict[str, int]:
        if self.candidates is None:
            return {}
        uncovered: Dict[str, int] = {}
        for m in matches:
            try:
                candidate = self.candidates.get(m['candidate_id'])
                job = self.jobs.get(m['job_id'])
            except NotFound:
                continue
            if not candidate.accommodation_needs:
                continue
            covered = set(covered_needs(candidate, job, self.scorer_config))
            for need in candidate.accommodation_needs:
                if need not in covered:
                    uncovered[need.value] = uncovered.get(need.value, 0) + 1
        return dict(sorted(uncovered.items(), key=lambda kv: (-kv[1], kv[0])))

    def _accessibility_coverage(self, current: List[Dict], previous: List[Dict]) -> List[MatchingInsight]:
        share, considered = self._accessible_share(m['job_id'] for m in current)
        if share is None:
            return []
        prev_share, _ = self._accessible_share(m['job_id'] for m in previous)
        pct = round(100.0 * share, 1)
        uncovered = self._uncovered_needs(current)
        actionable = share < self.config.accessibility_coverage_threshold

        recommendations = []
        if actionable:
            recommendations.append("Encourage employers to declare accessibility features")
            recommendations.append("Publish an accessibility best-practice guide for job postings")
        if uncovered:
            top_need = next(iter(uncovered))
            recommendations.append(f"Prioritise jobs offering {top_need.replace('_', ' ')}")

        return [MatchingInsight(
            type=InsightType.ACCESSIBILITY_COVERAGE,
            title="Accessibility coverage of matched jobs",
            description=f"{pct:.0f}% of matched jobs declare accessibility features or remote work",
            data={'percentage': pct, 'jobs_considered': considered, 'uncovered_needs': uncovered},
            trend=_trend(share, prev_share, 0.05),
            actionable=actionable,
            recommendations=recommendations,
        )]

    def _algorithm_insight(self, now: datetime, job_ids: Optional[List[str]]) -> List[MatchingInsight]:
        window = timedelta(days=self.config.window_days)
        current = algorithm_performance(
            self._load_outcomes(now - window, now, job_ids), self.config.score_threshold
        )
        if current.support == 0:
            return []
        previous = algorithm_performance(
            self._load_outcomes(now - 2 * window, now - window, job_ids), self.config.score_threshold
        )
        actionable = current.f1_score < self.config.target_f1
        return [MatchingInsight(
            type=InsightType.ALGORITHM_PERFORMANCE,
            title="Matching accuracy against hire outcomes",
            description=(
                f"Precision {current.precision:.2f}, recall {current.recall:.2f}, "
                f"F1 {current.f1_score:.2f} over {current.support} decided outcomes"
            ),
            data=current.to_dict(),
            trend=_trend(current.f1_score, previous.f1_score if previous.support else None, 0.05),
            actionable=actionable,
            recommendations=(
                ["Review default factor weights against recent outcomes"] if actionable else []
            ),
        )]

    def generate_insights(
        self,
        job_ids: Optional[List[str]] = None,
        now: Optional[datetime] = None,
        use_cache: bool = True
    ) -> List[MatchingInsight]:
        """Skill-demand, accessibility-coverage and algorithm-performance insights."""
        key = f"{STATS_NAMESPACE}:insights:{_scope_key(job_ids)}"
        if use_cache and self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return [MatchingInsight.from_dict(i) for i in cached]

        now = now or datetime.now(timezone.utc)
        window = timedelta(days=self.config.window_days)
        insights: List[MatchingInsight] = []

        if self.jobs is not None:
            current = self._load_matches(now - window, now, job_ids)
            previous = self._load_matches(now - 2 * window, now - window, job_ids)
            insights.extend(self._skill_demand(current, previous))
            insights.extend(self._accessibility_coverage(current, previous))

        insights.extend(self._algorithm_insight(now, job_ids))

        if use_cache and self.cache is not None:
            self.cache.set(key, [i.to_dict() for i in insights], self.cache_ttl_seconds)
        return insights

    def refresh(self, now: Optional[datetime] = None) -> MatchingStats:
        """Recompute the global stats and insights and repopulate the cache."""
        self.invalidate()
        stats = self.compute_stats(now=now)
        self.generate_insights(now=now)
        return stats


class StatsScheduler:
    """Recomputes statistics on its own thread until stopped."""

    def __init__(self, aggregator: FeedbackStatsAggregator, interval_seconds: float):
        self.aggregator = aggregator
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="stats-scheduler", daemon=True)
        self._thread.start()
        logger.info(f"Stats scheduler started (every {self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = None):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self):
        while not self._stop_event.is_set():
            try:
                self.aggregator.refresh()
            except Exception as e:
                logger.error(f"Scheduled stats refresh failed: {e}", exc_info=True)
            self._stop_event.wait(self.interval_seconds)
