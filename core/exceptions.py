#!/usr/bin/env python3
"""
Matching Exceptions - error types raised by the matching engine.

Every failure in this subsystem is scoped to a single request or a single
(candidate, job) pair; none of these exceptions is meant to stop the process.
"""

from typing import Optional


class MatchingException(Exception):
    """Base exception for matching engine errors."""
    pass


class InvalidCriteria(MatchingException):
    """Raised when criteria or weight overrides are malformed.

    Always raised synchronously, before any work is scheduled.
    """
    pass


class NotFound(MatchingException):
    """Raised when a candidate, job or match record does not exist."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class MatchNotFound(NotFound):
    """Raised when a match result id is unknown."""

    def __init__(self, match_id: str):
        super().__init__("match", match_id)


class ScorerTimeout(MatchingException):
    """Raised when a factor scorer exceeds its time bound."""

    def __init__(self, category: str, timeout_seconds: float):
        self.category = category
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{category} scorer exceeded {timeout_seconds:.2f}s"
        )


class Backpressure(MatchingException):
    """Raised when a tenant already runs its maximum number of bulk jobs."""

    def __init__(self, tenant_id: str, limit: int, retry_after_seconds: Optional[float] = None):
        self.tenant_id = tenant_id
        self.limit = limit
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Tenant {tenant_id} is at its limit of {limit} concurrent bulk jobs"
        )


class StatusConflict(MatchingException):
    """Raised when a status transition is not allowed or lost a race."""
    pass
