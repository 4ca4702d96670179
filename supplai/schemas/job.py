"""
Scheduled job schemas.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class DraftCleanupResult(BaseModel):
    deleted_drafts: int
    errors: list[str] = []


class ProcessJobsResponse(BaseModel):
    """Response of GET /api/cron/process-jobs."""

    success: bool
    message: str
    timestamp: datetime
    requeued_supplier_orders: int
    cleanup: DraftCleanupResult
