import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from .base import Base


class FeedbackRecord(Base):
    """
    Outcome feedback for a match. Rows are only ever inserted.
    """
    __tablename__ = 'match_feedback'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    match_id = Column(String(36), ForeignKey('match_result.id', ondelete='CASCADE'), nullable=False)

    outcome = Column(String(32), nullable=False)
    rating = Column(Integer, nullable=True)
    comment = Column(Text, nullable=True)
    user_id = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    match = relationship("MatchRecord", back_populates="feedback")

    __table_args__ = (
        Index('idx_feedback_match', 'match_id'),
        Index('idx_feedback_outcome', 'outcome'),
        Index('idx_feedback_created', 'created_at'),
    )
