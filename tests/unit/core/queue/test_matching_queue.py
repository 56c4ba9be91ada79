#!/usr/bin/env python3
"""
Test suite for the MatchingQueue: bulk processing, progress, cancellation,
backpressure and completion notifications.
"""

import threading
import time
import unittest
from unittest.mock import MagicMock, Mock

import pytest

from core.config_loader import QueueConfig
from core.exceptions import Backpressure, InvalidCriteria, NotFound
from core.matcher.models import MatchResult
from core.models import parse_bulk_request
from core.queue import MatchingQueue, QueueStatus, BulkMatchingResult
from core.scorer.factors import DEFAULT_SCORERS
from core.scorer.models import FactorCategory
from notification.message_builder import BulkJobEvent
from tests.mocks.builders import build_stack, make_candidate, make_job

WAIT_SECONDS = 20


@pytest.mark.slow
class TestBulkMatching(unittest.TestCase):
    """Bulk requests against a real matcher and SQLite database."""

    def setUp(self):
        self.stack = build_stack(queue=QueueConfig(poll_interval_seconds=0.05))
        self.stack.candidates.add(make_candidate())
        for i in range(10):
            self.stack.jobs.add(make_job(f"job-{i}"))
        self.dispatcher = Mock()
        self.queue = MatchingQueue(
            self.stack.matcher, self.stack.config.queue, dispatcher=self.dispatcher, max_workers=3
        )

    def tearDown(self):
        self.queue.shutdown(wait=True, timeout=5)
        self.stack.close()

    def test_ten_jobs_one_candidate(self):
        progress = []
        self.queue.add_listener(lambda snapshot: progress.append(snapshot.progress))

        request = parse_bulk_request({"job_ids": [f"job-{i}" for i in range(10)]})
        submitted = self.queue.submit_bulk(request)
        self.assertEqual(submitted.total_jobs, 10)

        final = self.queue.wait(submitted.id, timeout=WAIT_SECONDS)

        self.assertEqual(final.status, QueueStatus.COMPLETED)
        self.assertEqual(final.processed_jobs, 10)
        self.assertEqual(final.failed_jobs, 0)
        self.assertEqual(final.total_matches, 10)
        self.assertEqual(final.progress, 100.0)
        self.assertIsNotNone(final.completed_at)
        self.assertTrue(all(0 < p <= 100.0 for p in progress))
        self.assertEqual(max(progress), 100.0)

        _, total = self.stack.matcher.list_for_candidate("cand-1")
        self.assertEqual(total, 10)

    def test_failed_pairs_do_not_stop_the_batch(self):
        request = parse_bulk_request({"job_ids": ["job-0", "job-missing", "job-1"]})

        final = self.queue.wait(self.queue.submit_bulk(request).id, timeout=WAIT_SECONDS)

        self.assertEqual(final.status, QueueStatus.COMPLETED)
        self.assertEqual(final.processed_jobs, 2)
        self.assertEqual(final.failed_jobs, 1)
        self.assertEqual(final.failed_pairs[0].job_id, "job-missing")
        self.assertEqual(final.failed_pairs[0].error_type, "NotFound")
        self.assertEqual(final.progress, 100.0)

    def test_scorer_timeout_fails_only_that_pair(self):
        release = threading.Event()
        score_culture = DEFAULT_SCORERS[FactorCategory.CULTURE]

        def stuck_for_job_3(candidate, job, config):
            if job.id == "job-3":
                release.wait(WAIT_SECONDS)
            return score_culture(candidate, job, config)

        self.stack.scoring.scorers[FactorCategory.CULTURE] = stuck_for_job_3
        try:
            request = parse_bulk_request({"job_ids": [f"job-{i}" for i in range(10)]})
            final = self.queue.wait(self.queue.submit_bulk(request).id, timeout=WAIT_SECONDS)

            self.assertEqual(final.status, QueueStatus.COMPLETED)
            self.assertEqual(final.processed_jobs, 9)
            self.assertEqual(final.failed_jobs, 1)
            self.assertEqual(final.failed_pairs[0].job_id, "job-3")
            self.assertEqual(final.failed_pairs[0].error_type, "ScorerTimeout")
            self.assertNotIn("job-3", [r.job_id for r in final.results])

            # Later inline matches still get scorer threads
            result = self.queue.submit_single("cand-1", "job-0")
            self.assertEqual(result.score, 86)
        finally:
            release.set()

    def test_all_pairs_failing_marks_entry_failed(self):
        request = parse_bulk_request({"job_ids": ["nope-1", "nope-2"]})
        final = self.queue.wait(self.queue.submit_bulk(request).id, timeout=WAIT_SECONDS)
        self.assertEqual(final.status, QueueStatus.FAILED)

    def test_empty_candidate_filter_completes_immediately(self):
        self.stack.candidates._records.clear()
        request = parse_bulk_request({"job_ids": ["job-0"]})

        submitted = self.queue.submit_bulk(request)

        self.assertEqual(submitted.status, QueueStatus.COMPLETED)
        self.assertEqual(submitted.total_jobs, 0)

    def test_completion_notifies_once(self):
        request = parse_bulk_request({"job_ids": ["job-0", "job-1"], "notify_on_completion": True})

        final = self.queue.wait(self.queue.submit_bulk(request).id, timeout=WAIT_SECONDS)

        self.assertEqual(final.status, QueueStatus.COMPLETED)
        self.dispatcher.notify.assert_called_once()
        event = self.dispatcher.notify.call_args[0][0]
        self.assertIsInstance(event, BulkJobEvent)
        self.assertEqual(event.entry_id, final.id)
        self.assertEqual(event.status, "completed")
        self.assertEqual(event.high_score_matches, 2)

    def test_no_notification_unless_requested(self):
        request = parse_bulk_request({"job_ids": ["job-0"]})
        self.queue.wait(self.queue.submit_bulk(request).id, timeout=WAIT_SECONDS)
        self.dispatcher.notify.assert_not_called()

    def test_user_exclusions_shrink_the_batch(self):
        self.stack.candidates.add(make_candidate("cand-2"))
        self.stack.matcher.update_preferences(
            "recruiter-1", {"excluded_jobs": ["job-2"], "excluded_candidates": ["cand-2"]}
        )
        request = parse_bulk_request({
            "job_ids": ["job-0", "job-1", "job-2"], "criteria": {"user_id": "recruiter-1"}
        })

        submitted = self.queue.submit_bulk(request)
        final = self.queue.wait(submitted.id, timeout=WAIT_SECONDS)

        self.assertEqual(submitted.total_jobs, 2)
        self.assertEqual(final.status, QueueStatus.COMPLETED)
        self.assertEqual(sorted((r.candidate_id, r.job_id) for r in final.results),
                         [("cand-1", "job-0"), ("cand-1", "job-1")])
        self.assertEqual(self.queue.get_entry_summary(submitted.id)["user_id"], "recruiter-1")

    def test_notification_limited_to_user_threshold(self):
        self.stack.matcher.update_preferences(
            "recruiter-1", {"notification_threshold": 80, "max_daily_matches": 1}
        )
        request = parse_bulk_request({
            "job_ids": ["job-0", "job-1"], "notify_on_completion": True,
            "criteria": {"user_id": "recruiter-1"}
        })

        self.queue.wait(self.queue.submit_bulk(request).id, timeout=WAIT_SECONDS)

        self.dispatcher.notify.assert_called_once()
        event = self.dispatcher.notify.call_args[0][0]
        self.assertEqual(event.user_id, "recruiter-1")
        self.assertEqual(len(event.top_matches), 1)
        self.assertEqual(event.top_matches[0].score, 86)

    def test_no_notification_below_user_threshold(self):
        self.stack.matcher.update_preferences("recruiter-1", {"notification_threshold": 95})
        request = parse_bulk_request({
            "job_ids": ["job-0"], "notify_on_completion": True,
            "criteria": {"user_id": "recruiter-1"}
        })

        final = self.queue.wait(self.queue.submit_bulk(request).id, timeout=WAIT_SECONDS)

        self.assertEqual(final.status, QueueStatus.COMPLETED)
        self.dispatcher.notify.assert_not_called()

    def test_cancellation_keeps_produced_results(self):
        queue = MatchingQueue(self.stack.matcher, self.stack.config.queue, max_workers=1)
        entry_ids = []

        def cancel_after_three(snapshot):
            if snapshot.processed_jobs == 3:
                queue.cancel(snapshot.id)

        queue.add_listener(cancel_after_three)
        try:
            request = parse_bulk_request({"job_ids": [f"job-{i}" for i in range(10)]})
            submitted = queue.submit_bulk(request)
            entry_ids.append(submitted.id)
            final = queue.wait(submitted.id, timeout=WAIT_SECONDS)
        finally:
            queue.shutdown(wait=True, timeout=5)

        self.assertEqual(final.status, QueueStatus.CANCELLED)
        self.assertEqual(final.processed_jobs, 3)
        self.assertEqual(final.total_matches, 3)
        self.assertLess(final.progress, 100.0)
        self.assertFalse(queue.cancel(entry_ids[0]))
        _, persisted = self.stack.matcher.list_for_candidate("cand-1")
        self.assertEqual(persisted, 3)

    def test_queued_single_match(self):
        snapshot = self.queue.submit_single("cand-1", "job-0", queued=True)
        self.assertIsInstance(snapshot, BulkMatchingResult)

        final = self.queue.wait(snapshot.id, timeout=WAIT_SECONDS)

        self.assertEqual(final.status, QueueStatus.COMPLETED)
        self.assertEqual(final.total_jobs, 1)
        self.assertEqual(final.results[0].job_id, "job-0")
        summary = self.queue.get_entry_summary(snapshot.id)
        self.assertEqual(summary["kind"], "single")

    def test_inline_single_match(self):
        result = self.queue.submit_single("cand-1", "job-0")
        self.assertIsInstance(result, MatchResult)
        self.assertEqual(result.score, 86)


class TestQueueControl(unittest.TestCase):
    """Queue bookkeeping with a mocked matcher."""

    def setUp(self):
        self.release = threading.Event()
        self.matcher = MagicMock()
        self.matcher.resolve_weights.return_value = {c: 1 / 6 for c in FactorCategory}
        self.matcher.candidate_ids_for.return_value = ["cand-1"]
        self.matcher.preferences_for.return_value = None
        self.matcher.process_pair.side_effect = self._blocking_pair
        self.queue = MatchingQueue(
            self.matcher,
            QueueConfig(max_concurrent_bulk_jobs=1, poll_interval_seconds=0.05,
                        backpressure_retry_after_seconds=7),
            max_workers=1
        )

    def tearDown(self):
        self.release.set()
        self.queue.shutdown(wait=True, timeout=5)

    def _blocking_pair(self, candidate_id, job_id, weights, deadline=None):
        self.release.wait(WAIT_SECONDS)
        return MatchResult(id=f"{candidate_id}-{job_id}", candidate_id=candidate_id,
                           job_id=job_id, score=75, confidence=0.9)

    def test_backpressure_per_tenant(self):
        first = self.queue.submit_bulk(parse_bulk_request({"job_ids": ["job-1"], "tenant_id": "acme"}))

        with self.assertRaises(Backpressure) as ctx:
            self.queue.submit_bulk(parse_bulk_request({"job_ids": ["job-2"], "tenant_id": "acme"}))

        self.assertEqual(ctx.exception.retry_after_seconds, 7)
        self.assertEqual(len(self.queue.list_entries(tenant_id="acme")), 1)

        # Another tenant is not affected
        other = self.queue.submit_bulk(parse_bulk_request({"job_ids": ["job-3"], "tenant_id": "globex"}))
        self.assertEqual(other.status, QueueStatus.QUEUED)

        self.release.set()
        self.assertEqual(self.queue.wait(first.id, timeout=WAIT_SECONDS).status, QueueStatus.COMPLETED)

    def test_invalid_weights_enqueue_nothing(self):
        self.matcher.resolve_weights.side_effect = InvalidCriteria("bad weights")

        with self.assertRaises(InvalidCriteria):
            self.queue.submit_bulk(parse_bulk_request({"job_ids": ["job-1"]}))

        self.assertEqual(self.queue.list_entries(), [])

    def test_cancel_queued_entry(self):
        blocking = self.queue.submit_bulk(parse_bulk_request({"job_ids": ["job-1"], "tenant_id": "a"}))
        waiting = self.queue.submit_bulk(parse_bulk_request({"job_ids": ["job-2"], "tenant_id": "b"}))

        self.assertTrue(self.queue.cancel(waiting.id))
        self.assertEqual(self.queue.get_status(waiting.id).status, QueueStatus.CANCELLED)

        self.release.set()
        self.queue.wait(blocking.id, timeout=WAIT_SECONDS)
        cancelled = self.queue.get_status(waiting.id)
        self.assertEqual(cancelled.processed_jobs, 0)

    def test_high_priority_runs_first(self):
        order = []
        blocker_started = threading.Event()

        def record(candidate_id, job_id, weights, deadline=None):
            order.append(job_id)
            if job_id == "blocker":
                blocker_started.set()
            return self._blocking_pair(candidate_id, job_id, weights, deadline)

        self.matcher.process_pair.side_effect = record
        self.queue.config.max_concurrent_bulk_jobs = 5
        first = self.queue.submit_bulk(parse_bulk_request({"job_ids": ["blocker"]}))
        self.assertTrue(blocker_started.wait(WAIT_SECONDS))
        low = self.queue.submit_bulk(parse_bulk_request({"job_ids": ["low"], "priority": "low"}))
        high = self.queue.submit_bulk(parse_bulk_request({"job_ids": ["high"], "priority": "high"}))

        self.release.set()
        for entry in (first, low, high):
            self.queue.wait(entry.id, timeout=WAIT_SECONDS)

        self.assertEqual(order, ["blocker", "high", "low"])

    def test_unknown_entry(self):
        with self.assertRaises(NotFound):
            self.queue.get_status("missing")
        with self.assertRaises(NotFound):
            self.queue.cancel("missing")

    def test_prune_removes_finished_entries(self):
        self.release.set()
        entry = self.queue.submit_bulk(parse_bulk_request({"job_ids": ["job-1"]}))
        self.queue.wait(entry.id, timeout=WAIT_SECONDS)

        self.assertEqual(self.queue.prune(older_than_seconds=0), 1)
        self.assertEqual(self.queue.list_entries(), [])

    def test_workers_prune_expired_entries(self):
        self.release.set()
        queue = MatchingQueue(
            self.matcher,
            QueueConfig(retention_seconds=0, prune_interval_seconds=0, poll_interval_seconds=0.05),
            max_workers=1
        )
        try:
            entry = queue.submit_bulk(parse_bulk_request({"job_ids": ["job-1"]}))
            self.assertEqual(queue.wait(entry.id, timeout=WAIT_SECONDS).status, QueueStatus.COMPLETED)

            deadline = time.monotonic() + WAIT_SECONDS
            while queue.list_entries() and time.monotonic() < deadline:
                time.sleep(0.05)
        finally:
            queue.shutdown(wait=True, timeout=5)

        self.assertEqual(queue.list_entries(), [])
        with self.assertRaises(NotFound):
            queue.get_status(entry.id)

    def test_entries_kept_within_retention(self):
        self.release.set()
        queue = MatchingQueue(
            self.matcher,
            QueueConfig(retention_seconds=3600, prune_interval_seconds=0, poll_interval_seconds=0.05),
            max_workers=1
        )
        try:
            entry = queue.submit_bulk(parse_bulk_request({"job_ids": ["job-1"]}))
            queue.wait(entry.id, timeout=WAIT_SECONDS)
            time.sleep(0.2)
            self.assertEqual(queue.get_status(entry.id).status, QueueStatus.COMPLETED)
        finally:
            queue.shutdown(wait=True, timeout=5)


if __name__ == '__main__':
    unittest.main()
