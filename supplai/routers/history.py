"""
Order history endpoint.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from supabase import AsyncClient

from supplai.core.dependencies import get_org_member, get_supabase
from supplai.schemas.history import HistoryFilter, HistoryResponse
from supplai.schemas.organization import OrganizationContext
from supplai.services.history_service import HistoryService

router = APIRouter()


def get_history_service(client: AsyncClient = Depends(get_supabase)) -> HistoryService:
    return HistoryService(client=client)


def get_history_filter(
    status: list[str] = Query(default=[]),
    supplier_id: UUID | None = None,
    member_id: UUID | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int = Query(default=100, ge=1, le=200),
) -> HistoryFilter:
    return HistoryFilter(
        status=status,
        supplier_id=supplier_id,
        member_id=member_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
    )


@router.get(
    "/organizations/{slug}/history",
    response_model=HistoryResponse,
    summary="Order history",
)
async def get_history(
    org: OrganizationContext = Depends(get_org_member),
    filters: HistoryFilter = Depends(get_history_filter),
    service: HistoryService = Depends(get_history_service),
) -> HistoryResponse:
    """
    Supplier orders and open order bundles, newest first.

    `status` may repeat; archived bundles only show up when asked for.
    """
    return await service.get_history(org.id, filters)
