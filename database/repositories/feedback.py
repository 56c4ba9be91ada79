import logging
from datetime import datetime
from typing import List, Optional, Iterable, Tuple

from sqlalchemy import select

from core.matcher.models import FeedbackOutcome
from database.models import FeedbackRecord, MatchRecord
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class FeedbackRepository(BaseRepository):
    """Append-only access to match feedback."""

    def add(
        self,
        match_id: str,
        outcome: FeedbackOutcome,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> FeedbackRecord:
        return self._add(FeedbackRecord(
            match_id=match_id,
            outcome=outcome.value,
            rating=rating,
            comment=comment,
            user_id=user_id,
        ))

    def list_for_match(self, match_id: str) -> List[FeedbackRecord]:
        stmt = (
            select(FeedbackRecord)
            .where(FeedbackRecord.match_id == match_id)
            .order_by(FeedbackRecord.created_at.asc())
        )
        return self._all(stmt)

    def latest_outcomes(
        self,
        job_ids: Optional[Iterable[str]] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None
    ) -> List[Tuple[str, int, str]]:
        """
        Latest feedback outcome per match, joined with the match score.

        Returns: list of (match_id, score, outcome)
        """
        stmt = (
            select(FeedbackRecord.match_id, MatchRecord.score, FeedbackRecord.outcome)
            .join(MatchRecord, MatchRecord.id == FeedbackRecord.match_id)
            .order_by(FeedbackRecord.created_at.asc(), FeedbackRecord.id.asc())
        )
        if job_ids:
            stmt = stmt.where(MatchRecord.job_id.in_(list(job_ids)))
        if start is not None:
            stmt = stmt.where(MatchRecord.created_at >= start)
        if end is not None:
            stmt = stmt.where(MatchRecord.created_at <= end)

        latest = {}
        for match_id, score, outcome in self.db.execute(stmt).all():
            latest[match_id] = (match_id, score, outcome)
        return list(latest.values())
