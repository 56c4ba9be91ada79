"""Queue Module - asynchronous bulk matching."""
from core.queue.models import (
    QueueStatus, SingleMatchPayload, BulkMatchPayload, FailedPair,
    BulkMatchingResult, MatchingQueueEntry, TERMINAL_QUEUE_STATUSES
)
from core.queue.service import MatchingQueue, default_worker_count

__all__ = [
    'MatchingQueue', 'default_worker_count',
    'QueueStatus', 'SingleMatchPayload', 'BulkMatchPayload', 'FailedPair',
    'BulkMatchingResult', 'MatchingQueueEntry', 'TERMINAL_QUEUE_STATUSES'
]
