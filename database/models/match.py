import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, Integer, Float, Boolean, DateTime, JSON,
    ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship

from .base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MatchRecord(Base):
    """
    Stores one version of a scored match between a candidate and a job.

    Versioning:
    - exactly one row per (candidate_id, job_id) has is_current = True
    - a refresh or a rescore of a reviewed/terminal match inserts a new
      version with supersedes_id pointing at the row it replaces
    - status changes are compare-and-swap updates on (id, status)
    """
    __tablename__ = 'match_result'

    id = Column(String(36), primary_key=True, default=_uuid)
    candidate_id = Column(String(255), nullable=False)
    job_id = Column(String(255), nullable=False)

    version = Column(Integer, nullable=False, default=1)
    supersedes_id = Column(String(36), ForeignKey('match_result.id'), nullable=True)
    is_current = Column(Boolean, nullable=False, default=True)

    score = Column(Integer, nullable=False)
    confidence = Column(Float, nullable=False)
    factors = Column(JSON, nullable=False, default=list)
    reasons = Column(JSON, nullable=False, default=list)
    recommendations = Column(JSON, nullable=False, default=list)
    weights = Column(JSON, nullable=False, default=dict)

    status = Column(String(32), nullable=False, default='pending')

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    feedback = relationship(
        "FeedbackRecord",
        back_populates="match",
        order_by="FeedbackRecord.created_at",
    )

    __table_args__ = (
        UniqueConstraint('candidate_id', 'job_id', 'version', name='uq_match_pair_version'),
        Index('idx_match_pair_current', 'candidate_id', 'job_id', 'is_current'),
        Index('idx_match_job', 'job_id'),
        Index('idx_match_candidate', 'candidate_id'),
        Index('idx_match_score', 'score'),
        Index('idx_match_status', 'status'),
        Index('idx_match_created', 'created_at'),
    )
