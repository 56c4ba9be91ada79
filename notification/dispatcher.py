#!/usr/bin/env python3
"""
Notification Dispatchers - hand-off of matching events to delivery workers.

Delivery (email, chat, webhooks) happens in separate RQ workers; this side
only enqueues the event payload. When Redis is unreachable the dispatcher
falls back to logging the event so matching is never blocked by it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from rq import Queue, Retry
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from notification.message_builder import BulkJobEvent

logger = logging.getLogger(__name__)


class NotificationDispatcher(ABC):
    @abstractmethod
    def notify(self, event: BulkJobEvent) -> Optional[str]:
        """
        Hand off an event. Returns an id for the queued job, if any.
        """
        pass


class LogNotificationDispatcher(NotificationDispatcher):
    """Logs events instead of queueing them."""

    def notify(self, event: BulkJobEvent) -> Optional[str]:
        logger.info(f"[notification] {event.subject} (entry {event.entry_id}, tenant {event.tenant_id})")
        return None


class QueueNotificationDispatcher(NotificationDispatcher):
    """
    Enqueues events on an RQ queue.

    The task is referenced by its import path, so this process does not need
    the delivery code installed.
    """

    def __init__(
        self,
        redis_url: str = 'redis://localhost:6379/0',
        queue_name: str = 'matching-notifications',
        task: str = 'notifications.tasks.deliver_matching_event',
        retry_max: int = 3
    ):
        self.redis_url = redis_url
        self.queue_name = queue_name
        self.task = task
        self.retry_max = retry_max
        self._fallback = LogNotificationDispatcher()

        try:
            self.redis_conn = Redis.from_url(self.redis_url)
            # Validate connection with ping before using
            self.redis_conn.ping()
            self.queue = Queue(queue_name, connection=self.redis_conn)
            self.async_mode = True
            logger.info(f"Notification dispatcher connected to Redis queue '{queue_name}'")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}. Notifications will only be logged.")
            self.redis_conn = None
            self.queue = None
            self.async_mode = False

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_fixed(0.5),
        retry=retry_if_exception_type(RedisConnectionError),
        reraise=True
    )
    def _enqueue(self, payload: Dict[str, Any]):
        retry_policy = Retry(max=self.retry_max, interval=[30, 60, 120][:self.retry_max] or 30)
        return self.queue.enqueue(
            self.task,
            payload,
            job_timeout='5m',
            result_ttl=86400,
            retry=retry_policy
        )

    def notify(self, event: BulkJobEvent) -> Optional[str]:
        if not self.async_mode:
            return self._fallback.notify(event)

        job = self._enqueue(event.model_dump(mode="json"))
        logger.info(f"Queued {event.event_type} for entry {event.entry_id} as job {job.id}")
        return job.id
