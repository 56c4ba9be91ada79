import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.orm import sessionmaker

from core.analytics import FeedbackStatsAggregator, StatsScheduler
from core.cache import LocalRecordCache, RecordCache
from core.config_loader import AppConfig
from core.export import MatchExporter
from core.matcher.service import MatcherService
from core.queue import MatchingQueue
from core.scorer import ScoringService, WeightingPolicy
from core.stores import (
    CachedCandidateStore,
    CachedJobStore,
    CandidateStore,
    InMemoryCandidateStore,
    InMemoryJobStore,
    JobStore,
)
from database.database import create_session_factory, init_db
from notification.dispatcher import (
    LogNotificationDispatcher,
    NotificationDispatcher,
    QueueNotificationDispatcher,
)

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    Single source of truth for service instantiation, shared by the CLI and
    the web app. DB access goes through match_uow() inside each operation.
    """
    config: AppConfig
    session_factory: sessionmaker
    cache: Union[RecordCache, LocalRecordCache]
    candidates: CandidateStore
    jobs: JobStore
    weighting: WeightingPolicy
    scoring: ScoringService
    matcher: MatcherService
    queue: MatchingQueue
    stats: FeedbackStatsAggregator
    exporter: MatchExporter
    dispatcher: NotificationDispatcher
    scheduler: Optional[StatsScheduler] = None

    @classmethod
    def build(
        cls,
        config: AppConfig,
        candidates: Optional[CandidateStore] = None,
        jobs: Optional[JobStore] = None
    ) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            candidates: Candidate store; loaded from config.stores when omitted
            jobs: Job store; loaded from config.stores when omitted

        Returns:
            Fully wired AppContext instance with the schema created
        """
        session_factory = create_session_factory(config.database)
        init_db(session_factory)

        cache = cls._build_cache(config)
        if candidates is None:
            candidates = cls._build_candidate_store(config)
        if jobs is None:
            jobs = cls._build_job_store(config)
        cached_candidates = CachedCandidateStore(candidates, cache, config.cache.ttl_seconds)
        cached_jobs = CachedJobStore(jobs, cache, config.cache.ttl_seconds)

        weighting = WeightingPolicy(config.matching.weights)
        scoring = ScoringService(config.matching.scorer)
        matcher = MatcherService(
            session_factory=session_factory,
            candidates=cached_candidates,
            jobs=cached_jobs,
            scoring=scoring,
            weighting=weighting,
            config=config.matching
        )
        if matcher.load_default_weights():
            logger.info("Loaded saved default weights")

        dispatcher = cls._build_dispatcher(config)
        queue = MatchingQueue(matcher, config.matching.queue, dispatcher=dispatcher)

        stats = FeedbackStatsAggregator(
            session_factory=session_factory,
            config=config.stats,
            cache=cache,
            jobs=cached_jobs,
            candidates=cached_candidates,
            scorer_config=config.matching.scorer,
            cache_ttl_seconds=config.cache.stats_ttl_seconds
        )
        scheduler = None
        if config.stats.schedule_enabled:
            scheduler = StatsScheduler(stats, config.stats.refresh_interval_seconds)

        return cls(
            config=config,
            session_factory=session_factory,
            cache=cache,
            candidates=cached_candidates,
            jobs=cached_jobs,
            weighting=weighting,
            scoring=scoring,
            matcher=matcher,
            queue=queue,
            stats=stats,
            exporter=MatchExporter(session_factory),
            dispatcher=dispatcher,
            scheduler=scheduler
        )

    @staticmethod
    def _build_cache(config: AppConfig) -> Union[RecordCache, LocalRecordCache]:
        if config.cache.enabled:
            return RecordCache(
                redis_url=config.cache.redis_url,
                password=config.cache.password,
                ttl_seconds=config.cache.ttl_seconds
            )
        return LocalRecordCache(ttl_seconds=config.cache.ttl_seconds)

    @staticmethod
    def _build_candidate_store(config: AppConfig) -> CandidateStore:
        if config.stores.candidates_path:
            return InMemoryCandidateStore.from_json(config.stores.candidates_path)
        return InMemoryCandidateStore()

    @staticmethod
    def _build_job_store(config: AppConfig) -> JobStore:
        if config.stores.jobs_path:
            return InMemoryJobStore.from_json(config.stores.jobs_path)
        return InMemoryJobStore()

    @staticmethod
    def _build_dispatcher(config: AppConfig) -> NotificationDispatcher:
        """Queue dispatcher if notifications are enabled, log-only otherwise."""
        notification_config = config.notifications
        if not notification_config.enabled:
            return LogNotificationDispatcher()

        return QueueNotificationDispatcher(
            redis_url=notification_config.redis_url or config.cache.redis_url,
            queue_name=notification_config.queue_name,
            task=notification_config.task,
            retry_max=notification_config.retry_max
        )

    def start_background(self):
        """Start queue workers and, if enabled, the stats scheduler."""
        self.queue.start()
        if self.scheduler is not None:
            self.scheduler.start()

    def shutdown(self):
        if self.scheduler is not None:
            self.scheduler.stop(timeout=5)
        self.queue.shutdown(wait=True, timeout=5)
        self.scoring.shutdown()
        self.session_factory.kw["bind"].dispose()
