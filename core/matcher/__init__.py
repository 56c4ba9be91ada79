"""Matcher Module - pair evaluation, explanations and match records.

MatcherService lives in core.matcher.service and is imported from there;
it depends on the database layer, which itself imports these models.
"""
from core.matcher.models import (
    MatchStatus, FeedbackOutcome, MatchFeedback, MatchResult,
    TERMINAL_STATUSES, ALLOWED_TRANSITIONS
)
from core.matcher.explainability import ExplanationGenerator

__all__ = [
    'ExplanationGenerator',
    'MatchStatus', 'FeedbackOutcome', 'MatchFeedback', 'MatchResult',
    'TERMINAL_STATUSES', 'ALLOWED_TRANSITIONS'
]
