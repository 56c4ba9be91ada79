#!/usr/bin/env python3
"""
Export endpoint - flat CSV of stored matches.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from core.export import ExportFilters, MatchExporter
from ..dependencies import get_exporter

router = APIRouter(prefix="/api/matching", tags=["export"])


@router.post("/export")
def export_matches(
    filters: ExportFilters,
    exporter: MatchExporter = Depends(get_exporter)
):
    """
    Export matches as CSV.

    Filters: created_at range, job ids, candidate ids, minimum score.
    Only current versions unless include_history is set.
    """
    return Response(
        content=exporter.to_csv(filters),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=matches.csv"}
    )
