#!/usr/bin/env python3
"""
Match Export - flat CSV of stored match results.

One row per match version with its score, confidence and the per-factor
raw score and weight.
"""

from datetime import datetime
from typing import List, Optional, TextIO, Dict, Any
import csv
import io
import logging

from pydantic import BaseModel, Field
from sqlalchemy.orm import sessionmaker

from core.matcher.models import MatchResult
from core.scorer.models import CATEGORY_ORDER
from database.repositories.match import record_to_result
from database.uow import match_uow

logger = logging.getLogger(__name__)

BASE_COLUMNS = ['candidate_id', 'job_id', 'version', 'status', 'score', 'confidence']


class ExportFilters(BaseModel):
    """Filters accepted by the export adapter."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    job_ids: Optional[List[str]] = None
    candidate_ids: Optional[List[str]] = None
    min_score: Optional[int] = Field(None, ge=0, le=100)
    include_history: bool = False


def export_columns() -> List[str]:
    columns = list(BASE_COLUMNS)
    for category in CATEGORY_ORDER:
        columns.append(f"{category.value}_score")
        columns.append(f"{category.value}_weight")
    return columns


def result_to_row(result: MatchResult) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        'candidate_id': result.candidate_id,
        'job_id': result.job_id,
        'version': result.version,
        'status': result.status.value,
        'score': result.score,
        'confidence': result.confidence,
    }
    for category in CATEGORY_ORDER:
        factor = result.factor(category)
        row[f"{category.value}_score"] = factor.raw_score
        row[f"{category.value}_weight"] = round(factor.weight, 4)
    return row


class MatchExporter:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def fetch(self, filters: ExportFilters) -> List[MatchResult]:
        with match_uow(self.session_factory) as repo:
            records = repo.matches.query(
                start=filters.start,
                end=filters.end,
                job_ids=filters.job_ids,
                candidate_ids=filters.candidate_ids,
                min_score=filters.min_score,
                current_only=not filters.include_history,
            )
            return [record_to_result(r) for r in records]

    def write_csv(self, filters: ExportFilters, out: TextIO) -> int:
        """
        Write matching rows to a text stream.

        Returns:
            Number of data rows written
        """
        results = self.fetch(filters)
        writer = csv.DictWriter(out, fieldnames=export_columns())
        writer.writeheader()
        for result in results:
            writer.writerow(result_to_row(result))
        logger.info(f"Exported {len(results)} match rows")
        return len(results)

    def to_csv(self, filters: Optional[ExportFilters] = None) -> str:
        buffer = io.StringIO()
        self.write_csv(filters or ExportFilters(), buffer)
        return buffer.getvalue()
