#!/usr/bin/env python3
"""
Test suite for bulk job events and notification dispatchers.
"""

import unittest
from datetime import datetime, timezone
from unittest.mock import Mock, patch

from redis.exceptions import ConnectionError as RedisConnectionError

from core.matcher.models import MatchResult
from core.queue.models import BulkMatchingResult, QueueStatus
from notification.dispatcher import LogNotificationDispatcher, QueueNotificationDispatcher
from notification.message_builder import (
    HIGH_SCORE_THRESHOLD, TOP_MATCHES, NotificationMessageBuilder, build_bulk_event
)


def bulk_result(status=QueueStatus.COMPLETED, scores=(92, 71, 40)):
    results = [
        MatchResult(id=f"m-{i}", candidate_id=f"cand-{i}", job_id="job-1", score=s, confidence=0.9)
        for i, s in enumerate(scores)
    ]
    return BulkMatchingResult(
        id="entry-1",
        status=status,
        progress=100.0,
        total_jobs=len(scores) + 1,
        processed_jobs=len(scores),
        failed_jobs=1,
        total_matches=len(scores),
        results=results,
        completed_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    )


class TestBulkJobEvent(unittest.TestCase):

    def test_completed_event(self):
        event = build_bulk_event(bulk_result(), tenant_id="acme")

        self.assertEqual(event.entry_id, "entry-1")
        self.assertEqual(event.tenant_id, "acme")
        self.assertEqual(event.status, "completed")
        self.assertEqual(event.high_score_matches, 2)
        self.assertEqual([m.score for m in event.top_matches], [92, 71, 40])
        self.assertIn("2 strong matches", event.subject)
        self.assertIn("Pairs processed: 3/4", event.body)
        self.assertIn("Pairs failed: 1", event.body)
        self.assertIn(f"({HIGH_SCORE_THRESHOLD}+ score): 2", event.body)

    def test_top_matches_are_capped(self):
        event = build_bulk_event(bulk_result(scores=range(50, 100, 5)), tenant_id="acme")
        self.assertEqual(len(event.top_matches), TOP_MATCHES)
        self.assertEqual(event.top_matches[0].score, 95)

    def test_user_threshold_and_limit(self):
        event = build_bulk_event(
            bulk_result(scores=(92, 88, 80, 71, 40)), tenant_id="acme",
            user_id="recruiter-1", min_score=80, limit=2
        )

        self.assertEqual(event.user_id, "recruiter-1")
        self.assertEqual(event.high_score_matches, 3)
        self.assertEqual([m.score for m in event.top_matches], [92, 88])
        self.assertIn("(80+ score): 3", event.body)

    def test_user_threshold_above_every_score(self):
        event = build_bulk_event(bulk_result(), tenant_id="acme", min_score=95)
        self.assertEqual(event.top_matches, [])
        self.assertEqual(event.high_score_matches, 0)

    def test_cancelled_subject(self):
        result = bulk_result(status=QueueStatus.CANCELLED)
        subject = NotificationMessageBuilder.build_subject(result, 0)
        self.assertIn("cancelled", subject)

    def test_event_serializes_to_json(self):
        payload = build_bulk_event(bulk_result(), tenant_id="acme").model_dump(mode="json")
        self.assertEqual(payload["completed_at"], "2026-03-01T12:00:00Z")
        self.assertEqual(payload["event_type"], "bulk_matching_finished")


class TestDispatchers(unittest.TestCase):

    def setUp(self):
        self.event = build_bulk_event(bulk_result(), tenant_id="acme")

    def test_log_dispatcher(self):
        with self.assertLogs('notification.dispatcher', level='INFO') as logs:
            self.assertIsNone(LogNotificationDispatcher().notify(self.event))
        self.assertIn("entry-1", logs.output[0])

    @patch('notification.dispatcher.Queue')
    @patch('notification.dispatcher.Redis')
    def test_queue_dispatcher_enqueues(self, mock_redis, mock_queue_class):
        mock_redis.from_url.return_value.ping.return_value = True
        mock_queue = Mock()
        mock_queue.enqueue.return_value = Mock(id='rq-123')
        mock_queue_class.return_value = mock_queue

        dispatcher = QueueNotificationDispatcher(
            redis_url='redis://localhost:6379/0', queue_name='events', task='delivery.tasks.deliver'
        )
        job_id = dispatcher.notify(self.event)

        self.assertEqual(job_id, 'rq-123')
        mock_queue_class.assert_called_once()
        self.assertEqual(mock_queue_class.call_args[0][0], 'events')
        args, kwargs = mock_queue.enqueue.call_args
        self.assertEqual(args[0], 'delivery.tasks.deliver')
        self.assertEqual(args[1]['entry_id'], 'entry-1')
        self.assertIn('retry', kwargs)

    @patch('notification.dispatcher.Redis')
    def test_unreachable_redis_falls_back_to_logging(self, mock_redis):
        mock_redis.from_url.return_value.ping.side_effect = Exception("Connection refused")

        dispatcher = QueueNotificationDispatcher()

        self.assertFalse(dispatcher.async_mode)
        self.assertIsNone(dispatcher.notify(self.event))

    @patch('notification.dispatcher.Queue')
    @patch('notification.dispatcher.Redis')
    def test_enqueue_retries_connection_errors(self, mock_redis, mock_queue_class):
        mock_redis.from_url.return_value.ping.return_value = True
        mock_queue = Mock()
        mock_queue.enqueue.side_effect = [RedisConnectionError("reset"), Mock(id='rq-9')]
        mock_queue_class.return_value = mock_queue

        dispatcher = QueueNotificationDispatcher()

        self.assertEqual(dispatcher.notify(self.event), 'rq-9')
        self.assertEqual(mock_queue.enqueue.call_count, 2)


if __name__ == '__main__':
    unittest.main()
