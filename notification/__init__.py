"""
Notification Module

Hands matching events off to asynchronous delivery workers.

Usage:
    from notification import QueueNotificationDispatcher, build_bulk_event

    dispatcher = QueueNotificationDispatcher(redis_url)
    dispatcher.notify(build_bulk_event(bulk_result, tenant_id))
"""

from notification.message_builder import (
    BulkJobEvent,
    TopMatch,
    NotificationMessageBuilder,
    build_bulk_event,
)

from notification.dispatcher import (
    NotificationDispatcher,
    LogNotificationDispatcher,
    QueueNotificationDispatcher,
)

__all__ = [
    'BulkJobEvent',
    'TopMatch',
    'NotificationMessageBuilder',
    'build_bulk_event',
    'NotificationDispatcher',
    'LogNotificationDispatcher',
    'QueueNotificationDispatcher',
]
