#!/usr/bin/env python3
"""
Bulk matching endpoints - submit, track and cancel queue entries.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from core.models import BulkMatchingRequest
from core.queue import MatchingQueue, QueueStatus
from ..dependencies import get_queue
from ..models.responses import BulkStatusResponse, CancelResponse, QueueEntriesResponse

router = APIRouter(prefix="/api/matching", tags=["bulk"])


@router.post("/bulk", response_model=BulkStatusResponse, status_code=202)
def submit_bulk(
    request: BulkMatchingRequest,
    queue: MatchingQueue = Depends(get_queue)
):
    """
    Queue matching of many jobs against the candidate filter.

    Returns the initial snapshot; poll /bulk/{entry_id} for progress.
    Returns 429 with Retry-After when the tenant already runs its maximum
    number of bulk jobs.
    """
    snapshot = queue.submit_bulk(request)
    return BulkStatusResponse(success=True, result=snapshot.to_dict())


@router.get("/bulk/{entry_id}", response_model=BulkStatusResponse)
def get_bulk_status(
    entry_id: str,
    queue: MatchingQueue = Depends(get_queue)
):
    """Progress, results so far and failed pairs of a queue entry."""
    return BulkStatusResponse(success=True, result=queue.get_status(entry_id).to_dict())


@router.get("/queue", response_model=QueueEntriesResponse)
def list_queue(
    tenant_id: Optional[str] = Query(default=None),
    status: Optional[QueueStatus] = Query(default=None),
    queue: MatchingQueue = Depends(get_queue)
):
    """Queue entries without their per-pair results, oldest first."""
    entries = queue.list_entries(tenant_id=tenant_id, status=status)
    return QueueEntriesResponse(success=True, count=len(entries), entries=entries)


@router.delete("/queue/{entry_id}", response_model=CancelResponse)
def cancel_entry(
    entry_id: str,
    queue: MatchingQueue = Depends(get_queue)
):
    """
    Request cancellation of a queue entry.

    Results already produced are kept. cancelled=false means the entry had
    already finished.
    """
    cancelled = queue.cancel(entry_id)
    return CancelResponse(success=True, entry_id=entry_id, cancelled=cancelled)
