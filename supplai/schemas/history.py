"""
Order history schemas.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel


class HistoryFilter(BaseModel):
    """Filters of GET /organizations/{slug}/history."""

    status: list[str] = []
    supplier_id: UUID | None = None
    member_id: UUID | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = 100


class HistoryEntry(BaseModel):
    """
    One row of the history list.

    `kind` tells a supplier order (sent to one supplier) from an order bundle
    that was never sent.
    """

    kind: Literal["supplier_order", "order"]
    id: UUID
    order_id: UUID
    status: str
    supplier_id: UUID | None = None
    supplier_name: str | None = None
    created_by: UUID | None = None
    created_by_name: str | None = None
    item_count: int = 0
    created_at: datetime
    sent_at: datetime | None = None


class HistoryResponse(BaseModel):
    entries: list[HistoryEntry]
    total: int
