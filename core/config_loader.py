import yaml
import os
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    url: str = "sqlite:///matching.db"
    echo: bool = False


class WeightsConfig(BaseModel):
    """Default factor weights. Renormalized at resolution time, so they need not sum to 1."""
    skills: float = 0.30
    experience: float = 0.25
    accessibility: float = 0.20
    location: float = 0.10
    culture: float = 0.10
    compensation: float = 0.05


class ScorerConfig(BaseModel):
    """
    Tunable constants for the factor scorers and aggregation.

    None of these are a fixed contract; they can be recalibrated without
    breaking the score/confidence invariants.
    """
    neutral_score: float = 50.0
    positive_threshold: float = 60.0

    # Skills
    skill_verified_bonus: float = 0.10
    skill_token_match_threshold: float = 0.6

    # Experience curve anchors
    experience_score_at_min: float = 70.0
    experience_score_at_target: float = 95.0
    experience_saturation_rate: float = 1.0

    # Location
    location_same_region_score: float = 60.0

    # Accessibility
    accessibility_zero_coverage_floor: float = 5.0
    accessibility_override_partial: float = 30.0
    remote_satisfiable_needs: List[str] = Field(default_factory=lambda: [
        "flexible_schedule",
        "wheelchair_access",
        "remote_work",
    ])

    # Compensation
    compensation_floor_score: float = 60.0
    compensation_max_shortfall: float = 0.30

    # Confidence
    confidence_floor: float = 0.5

    # Per-scorer time bound
    scorer_timeout_seconds: float = 0.5
    scorer_threads: int = 8


class QueueConfig(BaseModel):
    """Configuration for the matching queue and its worker pool."""
    max_workers: Optional[int] = None  # None = derived from cpu count
    max_concurrent_bulk_jobs: int = 5  # per tenant
    single_timeout_seconds: float = 2.0
    poll_interval_seconds: float = 0.2
    retention_seconds: int = 3600
    prune_interval_seconds: float = 60.0  # workers drop expired entries at most this often
    backpressure_retry_after_seconds: float = 5.0


class MatchingConfig(BaseModel):
    """
    Top-level matching configuration.
    """
    weights: WeightsConfig = Field(default_factory=WeightsConfig)
    scorer: ScorerConfig = Field(default_factory=ScorerConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)


class CacheConfig(BaseModel):
    """Short-TTL record cache in front of the candidate/job stores."""
    enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    password: Optional[str] = None
    ttl_seconds: int = 60
    stats_ttl_seconds: int = 300


class StatsConfig(BaseModel):
    """Feedback statistics and insight generation."""
    refresh_interval_seconds: int = 900
    schedule_enabled: bool = False
    score_threshold: int = 70  # predicted positive at or above this score
    window_days: int = 30
    skill_demand_increase_pct: float = 25.0
    min_skill_support: int = 3
    accessibility_coverage_threshold: float = 0.5
    target_f1: float = 0.7


class NotificationConfig(BaseModel):
    """
    Hand-off of bulk job events to the delivery workers.

    Delivery itself happens elsewhere; this side only enqueues.
    """
    enabled: bool = False
    redis_url: Optional[str] = None  # Falls back to cache.redis_url
    queue_name: str = "matching-notifications"
    task: str = "notifications.tasks.deliver_matching_event"
    retry_max: int = 3


class StoresConfig(BaseModel):
    """JSON files seeding the in-memory candidate and job stores."""
    candidates_path: Optional[str] = None
    jobs_path: Optional[str] = None


class WebConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class AppConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    stats: StatsConfig = Field(default_factory=StatsConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    stores: StoresConfig = Field(default_factory=StoresConfig)
    web: WebConfig = Field(default_factory=WebConfig)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        data.setdefault('database', {})
        data['database']['url'] = env_db_url

    # Redis serves both the record cache and the notification queue
    env_redis_url = os.environ.get("REDIS_URL")
    if env_redis_url:
        data.setdefault('cache', {})
        data['cache']['redis_url'] = env_redis_url
        data.setdefault('notifications', {})
        data['notifications']['redis_url'] = env_redis_url

    if os.environ.get("WEB_HOST"):
        data.setdefault('web', {})
        data['web']['host'] = os.environ["WEB_HOST"]

    if os.environ.get("WEB_PORT"):
        data.setdefault('web', {})
        data['web']['port'] = int(os.environ["WEB_PORT"])

    return data


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from root), try next to the package
    if not os.path.exists(config_path):
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    data: Dict[str, Any] = {}
    if os.path.exists(config_path):
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

    data = _apply_env_overrides(data)

    return AppConfig(**data)
