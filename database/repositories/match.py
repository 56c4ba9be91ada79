import logging
from datetime import datetime, timezone
from typing import List, Optional, Iterable, Tuple

from sqlalchemy import select, update, func

from core.exceptions import MatchNotFound, StatusConflict
from core.matcher.models import (
    ALLOWED_TRANSITIONS, FeedbackOutcome, MatchFeedback, MatchResult, MatchStatus
)
from core.scorer.models import Factor, ScoredPair
from database.models import MatchRecord
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def record_to_result(record: MatchRecord) -> MatchResult:
    """Convert an ORM row to a MatchResult while the session is open."""
    feedback = None
    if record.feedback:
        latest = record.feedback[-1]
        feedback = MatchFeedback(
            id=latest.id,
            match_id=latest.match_id,
            outcome=FeedbackOutcome(latest.outcome),
            rating=latest.rating,
            comment=latest.comment,
            user_id=latest.user_id,
            created_at=as_utc(latest.created_at),
        )

    return MatchResult(
        id=record.id,
        candidate_id=record.candidate_id,
        job_id=record.job_id,
        version=record.version,
        supersedes_id=record.supersedes_id,
        is_current=record.is_current,
        score=record.score,
        confidence=record.confidence,
        factors=[Factor.from_dict(f) for f in (record.factors or [])],
        reasons=list(record.reasons or []),
        recommendations=list(record.recommendations or []),
        weights=dict(record.weights or {}),
        status=MatchStatus(record.status),
        feedback=feedback,
        created_at=as_utc(record.created_at),
        updated_at=as_utc(record.updated_at),
    )


def _scored_values(scored: ScoredPair) -> dict:
    return {
        'score': scored.score,
        'confidence': scored.confidence,
        'factors': [f.to_dict() for f in scored.factors],
        'reasons': list(scored.reasons),
        'recommendations': list(scored.recommendations),
        'weights': dict(scored.weights),
    }


class MatchRepository(BaseRepository):
    def get(self, match_id: str) -> MatchRecord:
        record = self.db.get(MatchRecord, match_id)
        if record is None:
            raise MatchNotFound(match_id)
        return record

    def get_current(self, candidate_id: str, job_id: str) -> Optional[MatchRecord]:
        stmt = select(MatchRecord).where(
            MatchRecord.candidate_id == candidate_id,
            MatchRecord.job_id == job_id,
            MatchRecord.is_current.is_(True)
        ).order_by(MatchRecord.version.desc())
        return self.db.execute(stmt).scalars().first()

    def list_versions(self, candidate_id: str, job_id: str) -> List[MatchRecord]:
        stmt = select(MatchRecord).where(
            MatchRecord.candidate_id == candidate_id,
            MatchRecord.job_id == job_id
        ).order_by(MatchRecord.version.asc())
        return self._all(stmt)

    def _next_version(self, candidate_id: str, job_id: str) -> int:
        stmt = select(func.max(MatchRecord.version)).where(
            MatchRecord.candidate_id == candidate_id,
            MatchRecord.job_id == job_id
        )
        return (self.db.execute(stmt).scalar() or 0) + 1

    def _insert_version(
        self,
        scored: ScoredPair,
        supersedes: Optional[MatchRecord],
        is_current: bool
    ) -> MatchRecord:
        return self._add(MatchRecord(
            candidate_id=scored.candidate_id,
            job_id=scored.job_id,
            version=self._next_version(scored.candidate_id, scored.job_id),
            supersedes_id=supersedes.id if supersedes else None,
            is_current=is_current,
            status=MatchStatus.PENDING.value,
            **_scored_values(scored)
        ))

    def _cas(self, match_id: str, expected_status: str, **values) -> bool:
        """
        UPDATE ... WHERE id = :id AND status = :expected AND is_current.

        Superseded versions are history and never change. True if the row was updated.
        """
        values.setdefault('updated_at', datetime.now(timezone.utc))
        stmt = (
            update(MatchRecord)
            .where(
                MatchRecord.id == match_id,
                MatchRecord.status == expected_status,
                MatchRecord.is_current.is_(True)
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        updated = self.db.execute(stmt).rowcount == 1
        if updated:
            self.db.expire_all()
        return updated

    def upsert(self, scored: ScoredPair) -> MatchRecord:
        """
        Write a scoring result for (candidate, job).

        - no current record: insert version 1
        - current record pending: overwrite in place (compare-and-swap on status and is_current)
        - current record reviewed/accepted/rejected, or the swap lost a race:
          insert a new non-current version superseding it; the existing record is untouched

        Raises:
            IntegrityError: If a concurrent writer inserted the same version first
        """
        current = self.get_current(scored.candidate_id, scored.job_id)
        if current is None:
            return self._insert_version(scored, supersedes=None, is_current=True)

        if current.status == MatchStatus.PENDING.value:
            if self._cas(current.id, MatchStatus.PENDING.value, **_scored_values(scored)):
                return self.get(current.id)
            logger.info(
                f"Match {current.id} changed or was superseded during rescoring; "
                "storing result as a new version"
            )

        return self._insert_version(scored, supersedes=current, is_current=False)

    def refresh(self, match_id: str, scored: ScoredPair) -> MatchRecord:
        """
        Store an explicit re-evaluation as a new version referencing the prior one.

        The new version becomes current only if the prior was still pending.
        """
        prior = self.get(match_id)
        new_is_current = False
        if prior.is_current and prior.status == MatchStatus.PENDING.value:
            new_is_current = self._cas(prior.id, MatchStatus.PENDING.value, is_current=False)

        record = self._insert_version(scored, supersedes=prior, is_current=new_is_current)
        logger.info(
            f"Refreshed match {match_id} as version {record.version} "
            f"({'current' if new_is_current else 'not current'})"
        )
        return record

    def _get_current_version(self, match_id: str) -> MatchRecord:
        record = self.get(match_id)
        if not record.is_current:
            raise StatusConflict(f"Match {match_id} is not the current version")
        return record

    def update_status(self, match_id: str, new_status: MatchStatus) -> MatchRecord:
        record = self._get_current_version(match_id)
        old_status = MatchStatus(record.status)
        if new_status not in ALLOWED_TRANSITIONS[old_status]:
            raise StatusConflict(
                f"Cannot move match {match_id} from {old_status.value} to {new_status.value}"
            )
        if not self._cas(match_id, old_status.value, status=new_status.value):
            raise StatusConflict(f"Match {match_id} was modified concurrently")
        return self.get(match_id)

    def reopen(self, match_id: str) -> MatchRecord:
        """Administrative override: return a reviewed or terminal record to pending."""
        record = self._get_current_version(match_id)
        old_status = MatchStatus(record.status)
        if old_status == MatchStatus.PENDING:
            raise StatusConflict(f"Match {match_id} is already pending")
        if not self._cas(match_id, old_status.value, status=MatchStatus.PENDING.value):
            raise StatusConflict(f"Match {match_id} was modified concurrently")
        logger.info(f"Reopened match {match_id} (was {old_status.value})")
        return self.get(match_id)

    def _listing(
        self,
        column,
        value: str,
        page: int,
        page_size: int,
        min_score: Optional[int],
        status: Optional[MatchStatus]
    ) -> Tuple[List[MatchRecord], int]:
        conditions = [column == value, MatchRecord.is_current.is_(True)]
        if min_score is not None:
            conditions.append(MatchRecord.score >= min_score)
        if status is not None:
            conditions.append(MatchRecord.status == status.value)

        total = self.db.execute(
            select(func.count()).select_from(MatchRecord).where(*conditions)
        ).scalar() or 0

        stmt = (
            select(MatchRecord)
            .where(*conditions)
            .order_by(MatchRecord.score.desc(), MatchRecord.created_at.asc(), MatchRecord.id.asc())
        )
        return self._page(stmt, page, page_size), total

    def list_for_job(
        self,
        job_id: str,
        page: int = 1,
        page_size: int = 20,
        min_score: Optional[int] = None,
        status: Optional[MatchStatus] = None
    ) -> Tuple[List[MatchRecord], int]:
        return self._listing(MatchRecord.job_id, job_id, page, page_size, min_score, status)

    def list_for_candidate(
        self,
        candidate_id: str,
        page: int = 1,
        page_size: int = 20,
        min_score: Optional[int] = None,
        status: Optional[MatchStatus] = None
    ) -> Tuple[List[MatchRecord], int]:
        return self._listing(MatchRecord.candidate_id, candidate_id, page, page_size, min_score, status)

    def query(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        job_ids: Optional[Iterable[str]] = None,
        candidate_ids: Optional[Iterable[str]] = None,
        min_score: Optional[int] = None,
        current_only: bool = True
    ) -> List[MatchRecord]:
        """Filtered scan used by export and statistics."""
        stmt = select(MatchRecord)
        if current_only:
            stmt = stmt.where(MatchRecord.is_current.is_(True))
        if start is not None:
            stmt = stmt.where(MatchRecord.created_at >= start)
        if end is not None:
            stmt = stmt.where(MatchRecord.created_at <= end)
        if job_ids:
            stmt = stmt.where(MatchRecord.job_id.in_(list(job_ids)))
        if candidate_ids:
            stmt = stmt.where(MatchRecord.candidate_id.in_(list(candidate_ids)))
        if min_score is not None:
            stmt = stmt.where(MatchRecord.score >= min_score)
        stmt = stmt.order_by(MatchRecord.job_id, MatchRecord.candidate_id, MatchRecord.version)
        return self._all(stmt)
