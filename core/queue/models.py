#!/usr/bin/env python3
"""
Queue Models - queue entries, payload variants and bulk results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import Event, Lock
from typing import List, Dict, Any, Optional, Union, Literal

from core.matcher.models import MatchResult
from core.models import BulkMatchingRequest, MatchingPreferences, Priority


class QueueStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_QUEUE_STATUSES = frozenset({QueueStatus.COMPLETED, QueueStatus.FAILED, QueueStatus.CANCELLED})

# Lower rank is dequeued first
PRIORITY_RANK = {
    Priority.HIGH: 0,
    Priority.NORMAL: 1,
    Priority.LOW: 2,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SingleMatchPayload:
    candidate_id: str
    job_id: str
    weight_overrides: Optional[Dict[str, float]] = None
    kind: Literal["single"] = "single"


@dataclass
class BulkMatchPayload:
    request: BulkMatchingRequest
    candidate_ids: List[str] = field(default_factory=list)
    kind: Literal["bulk"] = "bulk"


QueuePayload = Union[SingleMatchPayload, BulkMatchPayload]


@dataclass
class FailedPair:
    candidate_id: str
    job_id: str
    error: str
    error_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'candidate_id': self.candidate_id,
            'job_id': self.job_id,
            'error': self.error,
            'error_type': self.error_type,
        }


@dataclass
class BulkMatchingResult:
    """Snapshot of a queue entry's progress and results."""
    id: str
    status: QueueStatus
    progress: float
    total_jobs: int
    processed_jobs: int
    failed_jobs: int
    total_matches: int
    results: List[MatchResult] = field(default_factory=list)
    failed_pairs: List[FailedPair] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status': self.status.value,
            'progress': self.progress,
            'total_jobs': self.total_jobs,
            'processed_jobs': self.processed_jobs,
            'failed_jobs': self.failed_jobs,
            'total_matches': self.total_matches,
            'results': [r.to_dict() for r in self.results],
            'failed_pairs': [f.to_dict() for f in self.failed_pairs],
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class MatchingQueueEntry:
    """
    One submitted request. Counters, results and status are guarded by lock;
    cancel_event is the cooperative cancellation flag checked after each pair.
    """
    id: str
    payload: QueuePayload
    priority: Priority
    tenant_id: str
    total_pairs: int
    status: QueueStatus = QueueStatus.QUEUED
    processed_pairs: int = 0
    failed_count: int = 0
    in_flight: int = 0
    results: List[MatchResult] = field(default_factory=list)
    failed_pairs: List[FailedPair] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    estimated_completion: Optional[datetime] = None
    notify_on_completion: bool = False
    user_id: Optional[str] = None
    preferences: Optional[MatchingPreferences] = None
    lock: Lock = field(default_factory=Lock, repr=False)
    cancel_event: Event = field(default_factory=Event, repr=False)
    done_event: Event = field(default_factory=Event, repr=False)

    @property
    def kind(self) -> str:
        return self.payload.kind

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_QUEUE_STATUSES

    @property
    def attempted(self) -> int:
        return self.processed_pairs + self.failed_count

    def progress(self) -> float:
        if self.total_pairs == 0:
            return 100.0
        return round(100.0 * self.attempted / self.total_pairs, 2)

    def snapshot(self) -> BulkMatchingResult:
        with self.lock:
            return BulkMatchingResult(
                id=self.id,
                status=self.status,
                progress=self.progress(),
                total_jobs=self.total_pairs,
                processed_jobs=self.processed_pairs,
                failed_jobs=self.failed_count,
                total_matches=len(self.results),
                results=list(self.results),
                failed_pairs=list(self.failed_pairs),
                started_at=self.started_at,
                completed_at=self.completed_at,
            )

    def summary(self) -> Dict[str, Any]:
        """Entry metadata without per-pair results, for queue listings."""
        with self.lock:
            return {
                'id': self.id,
                'kind': self.kind,
                'tenant_id': self.tenant_id,
                'user_id': self.user_id,
                'priority': self.priority.value,
                'status': self.status.value,
                'progress': self.progress(),
                'total_jobs': self.total_pairs,
                'processed_jobs': self.processed_pairs,
                'failed_jobs': self.failed_count,
                'created_at': self.created_at.isoformat(),
                'started_at': self.started_at.isoformat() if self.started_at else None,
                'completed_at': self.completed_at.isoformat() if self.completed_at else None,
                'estimated_completion': (
                    self.estimated_completion.isoformat() if self.estimated_completion else None
                ),
            }
