#!/usr/bin/env python3
"""
Matching Queue - asynchronous bulk matching on a bounded worker pool.

Entries move queued -> processing -> {completed | failed | cancelled}.
Bulk requests are expanded into (candidate, job) pairs at submission and
pushed onto one priority queue ordered by tier (high, normal, low) and then
submission order. Worker threads take one pair at a time; a failed pair is
recorded on its entry and never stops the batch.

After each pair the worker notifies progress listeners and then checks the
entry's cancellation flag. Pairs belonging to a cancelled entry are dropped
when dequeued; results already produced are kept.

Workers also drop terminal entries older than retention_seconds, checked
at most once per prune_interval_seconds.
"""

from collections import deque
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Deque, Dict, List, Mapping, Optional, Union
from threading import Lock, Event
import itertools
import logging
import os
import queue
import threading
import time
import uuid

from core.config_loader import QueueConfig
from core.exceptions import Backpressure, NotFound
from core.matcher.models import MatchResult
from core.matcher.service import MatcherService, effective_overrides
from core.models import BulkMatchingRequest, Priority
from core.queue.models import (
    PRIORITY_RANK, BulkMatchPayload, BulkMatchingResult, FailedPair,
    MatchingQueueEntry, QueueStatus, SingleMatchPayload, utcnow
)
from core.scorer.models import FactorCategory
from notification.dispatcher import NotificationDispatcher
from notification.message_builder import build_bulk_event

logger = logging.getLogger(__name__)

ProgressListener = Callable[[BulkMatchingResult], None]

# Rank for shutdown sentinels, after every real tier
_SENTINEL_RANK = 99
_DURATION_WINDOW = 200


def default_worker_count() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass
class _PairTask:
    entry_id: str
    candidate_id: str
    job_id: str
    weights: Mapping[FactorCategory, float]


class MatchingQueue:
    """
    Owns the queue entries and the worker threads.

    Workers are started lazily on the first queued submission, or explicitly
    with start(). Call shutdown() to stop them.
    """

    def __init__(
        self,
        matcher: MatcherService,
        config: QueueConfig,
        dispatcher: Optional[NotificationDispatcher] = None,
        max_workers: Optional[int] = None
    ):
        self.matcher = matcher
        self.config = config
        self.dispatcher = dispatcher
        self.max_workers = max_workers or config.max_workers or default_worker_count()

        self._pending: "queue.PriorityQueue" = queue.PriorityQueue()
        self._seq = itertools.count()
        self._entries: Dict[str, MatchingQueueEntry] = {}
        self._entries_lock = Lock()
        self._listeners: List[ProgressListener] = []
        self._listeners_lock = Lock()
        self._durations: Deque[float] = deque(maxlen=_DURATION_WINDOW)
        self._durations_lock = Lock()
        self._stop_event = Event()
        self._workers: List[threading.Thread] = []
        self._start_lock = Lock()
        self._prune_lock = Lock()
        self._last_prune = time.monotonic()

    # Lifecycle

    def start(self):
        with self._start_lock:
            if self._workers:
                return
            self._stop_event.clear()
            for i in range(self.max_workers):
                thread = threading.Thread(
                    target=self._worker_loop,
                    name=f"matching-worker-{i}",
                    daemon=True
                )
                thread.start()
                self._workers.append(thread)
            logger.info(f"Matching queue started with {self.max_workers} workers")

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        with self._start_lock:
            workers, self._workers = self._workers, []
            self._stop_event.set()
            for _ in workers:
                self._pending.put((_SENTINEL_RANK, next(self._seq), None))
        if wait:
            for thread in workers:
                thread.join(timeout)
        logger.info("Matching queue stopped")

    def add_listener(self, listener: ProgressListener):
        """Register a callback invoked with a snapshot after every processed pair."""
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: ProgressListener):
        with self._listeners_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    # Submission

    def submit_single(
        self,
        candidate_id: str,
        job_id: str,
        weight_overrides: Optional[Mapping[str, object]] = None,
        queued: bool = False,
        priority: Priority = Priority.NORMAL,
        tenant_id: str = "default"
    ) -> Union[MatchResult, BulkMatchingResult]:
        """
        Run a single match inline, or as a 'single' queue entry when queued=True.

        Returns:
            MatchResult when run inline, BulkMatchingResult snapshot when queued
        """
        if not queued:
            return self.matcher.match_single(candidate_id, job_id, weight_overrides)

        weights = self.matcher.resolve_weights(weight_overrides)
        entry = MatchingQueueEntry(
            id=str(uuid.uuid4()),
            payload=SingleMatchPayload(
                candidate_id=candidate_id,
                job_id=job_id,
                weight_overrides=dict(weight_overrides) if weight_overrides else None
            ),
            priority=priority,
            tenant_id=tenant_id,
            total_pairs=1,
        )
        with self._entries_lock:
            self._entries[entry.id] = entry
        self._enqueue(entry, [(candidate_id, job_id)], weights)
        return entry.snapshot()

    def submit_bulk(self, request: BulkMatchingRequest) -> BulkMatchingResult:
        """
        Validate and enqueue a bulk request.

        Raises:
            InvalidCriteria: Malformed weight overrides (nothing is enqueued)
            Backpressure: Tenant already at max_concurrent_bulk_jobs (no entry is created)
        """
        preferences = self.matcher.preferences_for(request.criteria)
        weights = self.matcher.resolve_weights(effective_overrides(request.criteria, preferences))
        candidate_ids = self.matcher.candidate_ids_for(request.criteria, preferences)
        job_ids = list(request.job_ids)
        if preferences is not None and preferences.excluded_jobs:
            excluded = set(preferences.excluded_jobs)
            job_ids = [j for j in job_ids if j not in excluded]
        pairs = [(c, j) for j in job_ids for c in candidate_ids]

        entry = MatchingQueueEntry(
            id=str(uuid.uuid4()),
            payload=BulkMatchPayload(request=request, candidate_ids=candidate_ids),
            priority=request.priority,
            tenant_id=request.tenant_id,
            total_pairs=len(pairs),
            notify_on_completion=request.notify_on_completion,
            user_id=request.criteria.user_id,
            preferences=preferences,
        )

        with self._entries_lock:
            active = sum(
                1 for e in self._entries.values()
                if e.kind == "bulk" and e.tenant_id == request.tenant_id and not e.is_terminal
            )
            if active >= self.config.max_concurrent_bulk_jobs:
                logger.warning(
                    f"Rejecting bulk request for tenant {request.tenant_id}: "
                    f"{active} bulk jobs already running"
                )
                raise Backpressure(
                    request.tenant_id,
                    self.config.max_concurrent_bulk_jobs,
                    self.config.backpressure_retry_after_seconds
                )
            self._entries[entry.id] = entry

        logger.info(
            f"Queued bulk entry {entry.id}: {len(job_ids)} jobs x "
            f"{len(candidate_ids)} candidates ({request.priority.value} priority)"
        )

        if not pairs:
            self._finalize(entry, QueueStatus.COMPLETED)
            return entry.snapshot()

        self._enqueue(entry, pairs, weights)
        return entry.snapshot()

    def _enqueue(self, entry: MatchingQueueEntry, pairs, weights: Mapping[FactorCategory, float]):
        with entry.lock:
            entry.estimated_completion = self._estimate_completion(len(pairs))
        rank = PRIORITY_RANK[entry.priority]
        for candidate_id, job_id in pairs:
            self._pending.put((rank, next(self._seq), _PairTask(entry.id, candidate_id, job_id, weights)))
        self.start()

    # Queries

    def _get_entry(self, entry_id: str) -> MatchingQueueEntry:
        with self._entries_lock:
            entry = self._entries.get(entry_id)
        if entry is None:
            raise NotFound("queue entry", entry_id)
        return entry

    def get_status(self, entry_id: str) -> BulkMatchingResult:
        return self._get_entry(entry_id).snapshot()

    def get_entry_summary(self, entry_id: str) -> Dict:
        return self._get_entry(entry_id).summary()

    def list_entries(
        self,
        tenant_id: Optional[str] = None,
        status: Optional[QueueStatus] = None
    ) -> List[Dict]:
        with self._entries_lock:
            entries = list(self._entries.values())
        summaries = []
        for entry in sorted(entries, key=lambda e: e.created_at):
            if tenant_id is not None and entry.tenant_id != tenant_id:
                continue
            if status is not None and entry.status != status:
                continue
            summaries.append(entry.summary())
        return summaries

    def wait(self, entry_id: str, timeout: Optional[float] = None) -> BulkMatchingResult:
        """Block until the entry is terminal (or timeout) and return its snapshot."""
        entry = self._get_entry(entry_id)
        entry.done_event.wait(timeout)
        return entry.snapshot()

    # Control

    def cancel(self, entry_id: str) -> bool:
        """
        Request cooperative cancellation.

        Returns:
            False if the entry had already reached a terminal status.
        """
        entry = self._get_entry(entry_id)
        entry.cancel_event.set()
        finalize = False
        with entry.lock:
            if entry.is_terminal:
                return False
            if entry.in_flight == 0:
                finalize = True
        if finalize:
            self._finalize(entry, QueueStatus.CANCELLED)
        logger.info(f"Cancellation requested for entry {entry_id}")
        return True

    def prune(self, older_than_seconds: Optional[float] = None) -> int:
        """Drop terminal entries completed more than retention_seconds ago."""
        retention = older_than_seconds if older_than_seconds is not None else self.config.retention_seconds
        cutoff = utcnow() - timedelta(seconds=retention)
        with self._entries_lock:
            expired = [
                entry_id for entry_id, e in self._entries.items()
                if e.is_terminal and e.completed_at is not None and e.completed_at <= cutoff
            ]
            for entry_id in expired:
                del self._entries[entry_id]
        if expired:
            logger.info(f"Pruned {len(expired)} finished queue entries")
        return len(expired)

    # Workers

    def _maybe_prune(self):
        now = time.monotonic()
        with self._prune_lock:
            if now - self._last_prune < self.config.prune_interval_seconds:
                return
            self._last_prune = now
        self.prune()

    def _worker_loop(self):
        while not self._stop_event.is_set():
            self._maybe_prune()
            try:
                _, _, task = self._pending.get(timeout=self.config.poll_interval_seconds)
            except queue.Empty:
                continue
            try:
                if task is None:
                    break
                self._process(task)
            except Exception as e:
                logger.error(f"Matching worker error: {e}", exc_info=True)
            finally:
                self._pending.task_done()

    def _execute(self, entry: MatchingQueueEntry, task: _PairTask) -> MatchResult:
        payload = entry.payload
        if isinstance(payload, SingleMatchPayload):
            deadline = time.monotonic() + self.matcher.config.queue.single_timeout_seconds
            return self.matcher.process_pair(payload.candidate_id, payload.job_id, task.weights, deadline)
        if isinstance(payload, BulkMatchPayload):
            return self.matcher.process_pair(task.candidate_id, task.job_id, task.weights)
        raise TypeError(f"Unhandled queue payload type: {type(payload).__name__}")

    def _process(self, task: _PairTask):
        with self._entries_lock:
            entry = self._entries.get(task.entry_id)
        if entry is None:
            return

        with entry.lock:
            if entry.cancel_event.is_set() or entry.is_terminal:
                return
            if entry.status == QueueStatus.QUEUED:
                entry.status = QueueStatus.PROCESSING
                entry.started_at = utcnow()
            entry.in_flight += 1

        started = time.monotonic()
        result: Optional[MatchResult] = None
        failure: Optional[FailedPair] = None
        try:
            result = self._execute(entry, task)
        except Exception as e:
            logger.warning(
                f"Pair candidate {task.candidate_id} / job {task.job_id} failed "
                f"in entry {entry.id}: {type(e).__name__}: {e}"
            )
            failure = FailedPair(task.candidate_id, task.job_id, str(e), type(e).__name__)

        with self._durations_lock:
            self._durations.append(time.monotonic() - started)

        with entry.lock:
            entry.in_flight -= 1
            if result is not None:
                entry.results.append(result)
                entry.processed_pairs += 1
            else:
                entry.failed_pairs.append(failure)
                entry.failed_count += 1
            entry.estimated_completion = self._estimate_completion(entry.total_pairs - entry.attempted)

        self._publish(entry)

        final_status: Optional[QueueStatus] = None
        with entry.lock:
            if entry.is_terminal:
                return
            if entry.attempted >= entry.total_pairs:
                final_status = QueueStatus.COMPLETED if entry.processed_pairs > 0 else QueueStatus.FAILED
            elif entry.cancel_event.is_set() and entry.in_flight == 0:
                final_status = QueueStatus.CANCELLED
        if final_status is not None:
            self._finalize(entry, final_status)

    def _publish(self, entry: MatchingQueueEntry):
        with self._listeners_lock:
            listeners = list(self._listeners)
        if not listeners:
            return
        snapshot = entry.snapshot()
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Progress listener failed for entry {entry.id}: {e}")

    def _finalize(self, entry: MatchingQueueEntry, status: QueueStatus):
        with entry.lock:
            if entry.is_terminal:
                return
            entry.status = status
            entry.completed_at = utcnow()
            entry.estimated_completion = None

        snapshot = entry.snapshot()
        logger.info(
            f"Entry {entry.id} {status.value}: {snapshot.processed_jobs}/{snapshot.total_jobs} pairs "
            f"succeeded, {snapshot.failed_jobs} failed"
        )

        if entry.notify_on_completion and self.dispatcher is not None:
            self._notify(entry, snapshot)
        # Waiters wake only after the completion event was handed off
        entry.done_event.set()

    def _notify(self, entry: MatchingQueueEntry, snapshot: BulkMatchingResult):
        """Hand off the completion event, gated by the submitting user's threshold."""
        try:
            preferences = entry.preferences
            if preferences is None:
                event = build_bulk_event(snapshot, entry.tenant_id)
            else:
                event = build_bulk_event(
                    snapshot,
                    entry.tenant_id,
                    user_id=entry.user_id,
                    min_score=preferences.notification_threshold,
                    limit=preferences.max_daily_matches
                )
                if not event.top_matches:
                    logger.info(
                        f"Entry {entry.id}: no match reached {preferences.notification_threshold} "
                        f"for user {entry.user_id}, skipping notification"
                    )
                    return
            self.dispatcher.notify(event)
        except Exception as e:
            logger.error(f"Failed to hand off completion event for entry {entry.id}: {e}")

    def _estimate_completion(self, remaining_pairs: int):
        with self._durations_lock:
            if not self._durations or remaining_pairs <= 0:
                return None
            average = sum(self._durations) / len(self._durations)
        seconds = average * remaining_pairs / max(1, self.max_workers)
        return utcnow() + timedelta(seconds=seconds)
