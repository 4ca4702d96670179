"""
Order endpoints.

Draft creation, review, item editing, finalize and lifecycle actions.
Order and item routes resolve the organization from the order itself.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Body, Depends, status
from supabase import AsyncClient

from supplai.core.dependencies import (
    get_current_user,
    get_org_member,
    get_session_service,
    get_supabase,
)
from supplai.schemas.auth import UserSession
from supplai.schemas.order import (
    EmailStatusResponse,
    FinalizeOrderResponse,
    NewOrderResponse,
    OrderItemCreateRequest,
    OrderItemReassignRequest,
    OrderItemResponse,
    OrderItemsSaveRequest,
    OrderItemUpdateRequest,
    OrderResponse,
    OrderReviewResponse,
)
from supplai.schemas.organization import OrganizationContext
from supplai.services.order_service import OrderService
from supplai.services.session_service import SessionService

router = APIRouter()


def get_order_service(
    client: AsyncClient = Depends(get_supabase),
    session: SessionService = Depends(get_session_service),
) -> OrderService:
    """Dependency that constructs OrderService."""
    return OrderService(client=client, session=session)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@router.post(
    "/organizations/{slug}/orders",
    response_model=NewOrderResponse,
    summary="Start a new order",
)
async def start_order(
    org: OrganizationContext = Depends(get_org_member),
    current_user: UserSession = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
) -> NewOrderResponse:
    """Resumes the caller's draft from the last 24 hours if there is one."""
    return await service.get_or_create_draft(org, current_user)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

@router.get("/orders/{order_id}", response_model=OrderReviewResponse, summary="Get order review")
async def get_order_review(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> OrderReviewResponse:
    return await service.get_order_review(order_id)


@router.get(
    "/orders/{order_id}/email-status",
    response_model=EmailStatusResponse,
    summary="Supplier email status snapshot",
)
async def get_email_status(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> EmailStatusResponse:
    return await service.get_email_status(order_id)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

@router.post(
    "/orders/{order_id}/items",
    response_model=OrderItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add an item",
)
async def create_order_item(
    order_id: UUID,
    data: OrderItemCreateRequest,
    service: OrderService = Depends(get_order_service),
) -> OrderItemResponse:
    return await service.create_order_item(order_id, data)


@router.put(
    "/orders/{order_id}/items",
    response_model=list[OrderItemResponse],
    summary="Save all items",
)
async def save_order_items(
    order_id: UUID,
    data: OrderItemsSaveRequest,
    service: OrderService = Depends(get_order_service),
) -> list[OrderItemResponse]:
    return await service.save_order_items(order_id, data.items)


@router.patch("/orders/items/{item_id}", response_model=OrderItemResponse, summary="Edit an item")
async def update_order_item(
    item_id: UUID,
    data: OrderItemUpdateRequest,
    service: OrderService = Depends(get_order_service),
) -> OrderItemResponse:
    return await service.update_order_item(item_id, data)


@router.patch(
    "/orders/items/{item_id}/supplier",
    response_model=OrderItemResponse,
    summary="Reassign an item",
)
async def reassign_item(
    item_id: UUID,
    data: OrderItemReassignRequest,
    service: OrderService = Depends(get_order_service),
) -> OrderItemResponse:
    return await service.reassign_item(item_id, data.supplier_id)


@router.delete(
    "/orders/items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete an item",
)
async def delete_order_item(
    item_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> None:
    await service.delete_order_item(item_id)


# ---------------------------------------------------------------------------
# Finalize / lifecycle
# ---------------------------------------------------------------------------

@router.post(
    "/orders/{order_id}/finalize",
    response_model=FinalizeOrderResponse,
    summary="Send the order to its suppliers",
)
async def finalize_order(
    order_id: UUID,
    data: OrderItemsSaveRequest | None = Body(default=None),
    service: OrderService = Depends(get_order_service),
) -> FinalizeOrderResponse:
    """
    Creates one supplier order per supplier and queues their emails.

    Items in the body are saved first. Unassigned items block sending.
    """
    return await service.finalize_order(order_id, data.items if data else None)


@router.post("/orders/{order_id}/archive", response_model=OrderResponse, summary="Archive order")
async def archive_order(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await service.archive_order(order_id)


@router.post("/orders/{order_id}/restore", response_model=OrderResponse, summary="Restore order")
async def restore_order(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await service.restore_order(order_id)


@router.post("/orders/{order_id}/cancel", response_model=OrderResponse, summary="Cancel order")
async def cancel_order(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    return await service.cancel_order(order_id)


@router.delete(
    "/orders/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete archived order",
)
async def delete_order(
    order_id: UUID,
    service: OrderService = Depends(get_order_service),
) -> None:
    """Admin only, archived orders only."""
    await service.delete_order(order_id)
