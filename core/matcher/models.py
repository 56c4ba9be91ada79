#!/usr/bin/env python3
"""
Matcher Models - match results and feedback.

These are plain dataclasses built from ORM rows while the session is still
open, so they can be used safely after the unit of work has closed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Dict, Any, Optional

from core.scorer.models import Factor, FactorCategory


class MatchStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset({MatchStatus.ACCEPTED, MatchStatus.REJECTED})

# Allowed human transitions; anything else is a StatusConflict
ALLOWED_TRANSITIONS = {
    MatchStatus.PENDING: frozenset({MatchStatus.REVIEWED, MatchStatus.ACCEPTED, MatchStatus.REJECTED}),
    MatchStatus.REVIEWED: frozenset({MatchStatus.ACCEPTED, MatchStatus.REJECTED}),
    MatchStatus.ACCEPTED: frozenset(),
    MatchStatus.REJECTED: frozenset(),
}


class FeedbackOutcome(str, Enum):
    HIRED = "hired"
    REJECTED = "rejected"
    NO_RESPONSE = "no_response"
    WITHDRAWN = "withdrawn"


@dataclass
class MatchFeedback:
    """Outcome reported for a match. Append-only."""
    outcome: FeedbackOutcome
    rating: Optional[int] = None
    comment: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None
    match_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'match_id': self.match_id,
            'outcome': self.outcome.value,
            'rating': self.rating,
            'comment': self.comment,
            'user_id': self.user_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class MatchResult:
    """One version of the scored match between a candidate and a job."""
    id: str
    candidate_id: str
    job_id: str
    score: int
    confidence: float
    factors: List[Factor] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    weights: Dict[str, float] = field(default_factory=dict)
    status: MatchStatus = MatchStatus.PENDING
    version: int = 1
    supersedes_id: Optional[str] = None
    is_current: bool = True
    feedback: Optional[MatchFeedback] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def factor(self, category: FactorCategory) -> Factor:
        for f in self.factors:
            if f.category == category:
                return f
        raise KeyError(category)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'candidate_id': self.candidate_id,
            'job_id': self.job_id,
            'version': self.version,
            'supersedes_id': self.supersedes_id,
            'is_current': self.is_current,
            'score': self.score,
            'confidence': self.confidence,
            'factors': [f.to_dict() for f in self.factors],
            'reasons': list(self.reasons),
            'recommendations': list(self.recommendations),
            'weights': dict(self.weights),
            'status': self.status.value,
            'feedback': self.feedback.to_dict() if self.feedback else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
