from datetime import datetime, timezone
from typing import List, Optional, TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from core.queue.models import BulkMatchingResult

HIGH_SCORE_THRESHOLD = 70
TOP_MATCHES = 5


class TopMatch(BaseModel):
    match_id: str
    candidate_id: str
    job_id: str
    score: int


class BulkJobEvent(BaseModel):
    """Payload handed to the delivery workers when a bulk job reaches a terminal status."""
    event_type: str = "bulk_matching_finished"
    entry_id: str
    tenant_id: str
    user_id: Optional[str] = None
    status: str
    total_jobs: int
    processed_jobs: int
    failed_jobs: int
    total_matches: int
    high_score_matches: int
    top_matches: List[TopMatch] = Field(default_factory=list)
    subject: str
    body: str
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationMessageBuilder:
    STATUS_ICONS = {
        "completed": "✅",
        "failed": "❌",
        "cancelled": "⏹",
    }

    @classmethod
    def build_subject(cls, result: "BulkMatchingResult", high_score_matches: int) -> str:
        icon = cls.STATUS_ICONS.get(result.status.value, "")
        if result.status.value == "completed":
            return f"{icon} Bulk matching complete: {high_score_matches} strong matches found".strip()
        return f"{icon} Bulk matching {result.status.value}".strip()

    @staticmethod
    def build_body(
        result: "BulkMatchingResult",
        high_score_matches: int,
        top: List[TopMatch],
        threshold: int = HIGH_SCORE_THRESHOLD
    ) -> str:
        lines = [
            f"Bulk matching job {result.id} finished with status '{result.status.value}'.",
            "",
            "Results Summary:",
            f"- Pairs processed: {result.processed_jobs}/{result.total_jobs}",
            f"- Pairs failed: {result.failed_jobs}",
            f"- High-quality matches ({threshold}+ score): {high_score_matches}",
        ]
        if top:
            lines.append("")
            lines.append("Top matches:")
            for m in top:
                lines.append(f"- candidate {m.candidate_id} / job {m.job_id}: {m.score}")
        return "\n".join(lines)


def build_bulk_event(
    result: "BulkMatchingResult",
    tenant_id: str,
    user_id: Optional[str] = None,
    min_score: Optional[int] = None,
    limit: int = TOP_MATCHES
) -> BulkJobEvent:
    """
    Build the completion event for a finished entry.

    With min_score (a user's notification threshold) only matches scoring at
    least that much are listed, and it replaces the default high-score line.
    """
    threshold = HIGH_SCORE_THRESHOLD if min_score is None else min_score
    high = sum(1 for r in result.results if r.score >= threshold)
    listed = result.results if min_score is None else [r for r in result.results if r.score >= min_score]
    ranked = sorted(listed, key=lambda r: (-r.score, r.candidate_id, r.job_id))[:limit]
    top = [
        TopMatch(match_id=r.id, candidate_id=r.candidate_id, job_id=r.job_id, score=r.score)
        for r in ranked
    ]
    return BulkJobEvent(
        entry_id=result.id,
        tenant_id=tenant_id,
        user_id=user_id,
        status=result.status.value,
        total_jobs=result.total_jobs,
        processed_jobs=result.processed_jobs,
        failed_jobs=result.failed_jobs,
        total_matches=result.total_matches,
        high_score_matches=high,
        top_matches=top,
        subject=NotificationMessageBuilder.build_subject(result, high),
        body=NotificationMessageBuilder.build_body(result, high, top, threshold),
        completed_at=result.completed_at,
    )
