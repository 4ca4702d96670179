"""
Order business logic.

Orders are bundles of items, each item assigned to a supplier. Finalizing
an order splits it into one supplier order per supplier and queues one
email per supplier order.

Lifecycle:
    draft -> review -> sent
    draft/review -> archived -> review
    draft/review -> cancelled
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status
from kombu.exceptions import OperationalError
from supabase import AsyncClient, PostgrestAPIError

from supplai.models.member import MembershipRole
from supplai.models.order import OPEN_ORDER_STATUSES, OrderStatus, SupplierOrderStatus
from supplai.schemas.auth import UserSession
from supplai.schemas.order import (
    EmailStatusResponse,
    FinalizeOrderResponse,
    NewOrderResponse,
    OrderItemCreateRequest,
    OrderItemInput,
    OrderItemResponse,
    OrderItemUpdateRequest,
    OrderResponse,
    OrderReviewResponse,
    SupplierOrderResponse,
)
from supplai.schemas.organization import OrganizationContext
from supplai.schemas.supplier import SupplierResponse
from supplai.services.session_service import OrderContext, SessionService

logger = logging.getLogger(__name__)

# A draft younger than this is resumed instead of creating a new one
DRAFT_REUSE_WINDOW = timedelta(hours=24)


def _now() -> datetime:
    return datetime.now(UTC)


def _bad_request(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": code, "message": message},
    )


def _ensure_editable(order: dict[str, Any]) -> None:
    if order["status"] not in {s.value for s in OPEN_ORDER_STATUSES}:
        raise _bad_request("ORDER_NOT_EDITABLE", "Only draft or review orders can be changed")


class OrderService:
    """Handles all order operations."""

    def __init__(self, client: AsyncClient, session: SessionService) -> None:
        self.client = client
        self.session = session

    # -----------------------------------------------------------------------
    # New order
    # -----------------------------------------------------------------------

    async def get_or_create_draft(
        self, org: OrganizationContext, user: UserSession
    ) -> NewOrderResponse:
        """
        Resume the user's latest draft from the last 24 hours, or create a
        new draft order right away.
        """
        since = (_now() - DRAFT_REUSE_WINDOW).isoformat()
        result = await (
            self.client.table("orders")
            .select("id, organization_id")
            .eq("organization_id", str(org.id))
            .eq("created_by", str(user.id))
            .eq("status", OrderStatus.draft.value)
            .gte("created_at", since)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if result.data:
            return NewOrderResponse(
                order_id=result.data[0]["id"],
                organization_id=org.id,
                organization_slug=org.slug,
                resumed=True,
            )

        created = await (
            self.client.table("orders")
            .insert(
                {
                    "organization_id": str(org.id),
                    "created_by": str(user.id),
                    "status": OrderStatus.draft.value,
                }
            )
            .execute()
        )
        order_id = created.data[0]["id"]
        logger.info("Draft order %s created in org %s", order_id, org.slug)
        return NewOrderResponse(
            order_id=order_id,
            organization_id=org.id,
            organization_slug=org.slug,
            resumed=False,
        )

    async def list_recent_orders(self, organization_id: UUID, limit: int = 5) -> list[OrderResponse]:
        result = await (
            self.client.table("orders")
            .select("*")
            .eq("organization_id", str(organization_id))
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [OrderResponse(**row) for row in result.data or []]

    # -----------------------------------------------------------------------
    # Review
    # -----------------------------------------------------------------------

    async def _items(self, order_id: str) -> list[dict[str, Any]]:
        result = await (
            self.client.table("order_items")
            .select("*")
            .eq("order_id", order_id)
            .order("created_at")
            .execute()
        )
        return result.data or []

    async def get_order_review(self, order_id: UUID) -> OrderReviewResponse:
        ctx = await self.session.get_order_context(str(order_id))

        items = await self._items(str(order_id))
        suppliers = await (
            self.client.table("suppliers")
            .select("*")
            .eq("organization_id", ctx.order["organization_id"])
            .is_("deleted_at", "null")
            .order("name")
            .execute()
        )

        return OrderReviewResponse(
            order=OrderResponse(**ctx.order),
            organization_slug=ctx.organization_slug,
            items=[OrderItemResponse(**row) for row in items],
            suppliers=[SupplierResponse(**row) for row in suppliers.data or []],
            user_role=ctx.role,
        )

    # -----------------------------------------------------------------------
    # Items
    # -----------------------------------------------------------------------

    async def _item_context(self, item_id: UUID) -> tuple[dict[str, Any], OrderContext]:
        result = await (
            self.client.table("order_items")
            .select("*")
            .eq("id", str(item_id))
            .limit(1)
            .execute()
        )
        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "ITEM_NOT_FOUND", "message": "Order item not found"},
            )
        item = result.data[0]
        ctx = await self.session.get_order_context(item["order_id"])
        return item, ctx

    async def create_order_item(
        self, order_id: UUID, data: OrderItemCreateRequest
    ) -> OrderItemResponse:
        """Manual entry, so confidence is 1.0."""
        ctx = await self.session.get_order_context(str(order_id))
        _ensure_editable(ctx.order)

        result = await (
            self.client.table("order_items")
            .insert(
                {
                    "order_id": str(order_id),
                    "supplier_id": str(data.supplier_id),
                    "product": data.product,
                    "quantity": data.quantity,
                    "unit": data.unit.value,
                    "confidence_score": 1.0,
                }
            )
            .execute()
        )
        return OrderItemResponse(**result.data[0])

    async def update_order_item(
        self, item_id: UUID, data: OrderItemUpdateRequest
    ) -> OrderItemResponse:
        item, ctx = await self._item_context(item_id)
        _ensure_editable(ctx.order)

        changes = data.model_dump(mode="json", exclude_none=True)
        if not changes:
            return OrderItemResponse(**item)

        result = await (
            self.client.table("order_items").update(changes).eq("id", str(item_id)).execute()
        )
        return OrderItemResponse(**result.data[0])

    async def reassign_item(self, item_id: UUID, supplier_id: UUID | None) -> OrderItemResponse:
        """Move an item to a supplier (confidence 1.0) or unassign it."""
        _, ctx = await self._item_context(item_id)
        _ensure_editable(ctx.order)

        result = await (
            self.client.table("order_items")
            .update(
                {
                    "supplier_id": str(supplier_id) if supplier_id else None,
                    "confidence_score": 1.0 if supplier_id else None,
                }
            )
            .eq("id", str(item_id))
            .execute()
        )
        return OrderItemResponse(**result.data[0])

    async def delete_order_item(self, item_id: UUID) -> None:
        _, ctx = await self._item_context(item_id)
        _ensure_editable(ctx.order)

        await self.client.table("order_items").delete().eq("id", str(item_id)).execute()

    async def save_order_items(
        self, order_id: UUID, items: list[OrderItemInput]
    ) -> list[OrderItemResponse]:
        """
        Batch save from the review screen.

        Items with a `temp-` id are inserted and get a database id, the
        rest are upserted on id.
        """
        ctx = await self.session.get_order_context(str(order_id))
        _ensure_editable(ctx.order)
        return await self._save_items(str(order_id), items)

    async def _save_items(self, order_id: str, items: list[OrderItemInput]) -> list[OrderItemResponse]:
        def row(item: OrderItemInput) -> dict[str, Any]:
            return {
                "order_id": order_id,
                "supplier_id": str(item.supplier_id) if item.supplier_id else None,
                "product": item.product,
                "quantity": item.quantity,
                "unit": item.unit.value,
                "confidence_score": item.confidence_score,
                "original_text": item.original_text,
            }

        new_rows = [row(item) for item in items if item.is_new]
        existing_rows = [{"id": item.id, **row(item)} for item in items if not item.is_new]

        saved: list[dict[str, Any]] = []
        try:
            if existing_rows:
                ids = [r["id"] for r in existing_rows]
                owned = await (
                    self.client.table("order_items")
                    .select("id")
                    .eq("order_id", order_id)
                    .in_("id", ids)
                    .execute()
                )
                if {r["id"] for r in owned.data or []} != set(ids):
                    raise HTTPException(
                        status_code=status.HTTP_404_NOT_FOUND,
                        detail={"code": "ITEM_NOT_FOUND", "message": "Order item not found"},
                    )
                result = await (
                    self.client.table("order_items")
                    .upsert(existing_rows, on_conflict="id")
                    .execute()
                )
                saved += result.data or []
            if new_rows:
                result = await self.client.table("order_items").insert(new_rows).execute()
                saved += result.data or []
        except PostgrestAPIError as exc:
            logger.error("Error saving items of order %s: %s", order_id, exc.message)
            raise _bad_request("ITEMS_SAVE_FAILED", "Could not save the order items")

        return [OrderItemResponse(**r) for r in saved]

    # -----------------------------------------------------------------------
    # Finalize
    # -----------------------------------------------------------------------

    async def finalize_order(
        self, order_id: UUID, items: list[OrderItemInput] | None = None
    ) -> FinalizeOrderResponse:
        """
        Send the order.

        - Saves `items` first when given
        - Every item must have a supplier
        - Order becomes `sent` with `sent_at` before any supplier order
          exists; a request that loses that race gets ORDER_NOT_EDITABLE
        - One pending supplier order per supplier, one email job each
        """
        ctx = await self.session.get_order_context(str(order_id))
        _ensure_editable(ctx.order)

        if items:
            await self._save_items(str(order_id), items)

        rows = await self._items(str(order_id))
        if not rows:
            raise _bad_request("ORDER_EMPTY", "The order has no items")
        if any(r.get("supplier_id") is None for r in rows):
            raise _bad_request(
                "UNASSIGNED_ITEMS", "Assign every item to a supplier before sending"
            )

        by_supplier: dict[str, list[dict[str, Any]]] = defaultdict(list)
        for r in rows:
            by_supplier[r["supplier_id"]].append(r)

        # Only one request may move the order out of draft/review
        claimed = await (
            self.client.table("orders")
            .update(
                {
                    "status": OrderStatus.sent.value,
                    "sent_at": _now().isoformat(),
                    "updated_at": _now().isoformat(),
                }
            )
            .eq("id", str(order_id))
            .in_("status", [s.value for s in OPEN_ORDER_STATUSES])
            .execute()
        )
        if not claimed.data:
            raise _bad_request("ORDER_NOT_EDITABLE", "Only draft or review orders can be changed")

        result = await (
            self.client.table("supplier_orders")
            .insert(
                [
                    {
                        "order_id": str(order_id),
                        "supplier_id": supplier_id,
                        "status": SupplierOrderStatus.pending.value,
                    }
                    for supplier_id in by_supplier
                ]
            )
            .execute()
        )
        supplier_orders = [SupplierOrderResponse(**r) for r in result.data or []]

        from supplai.workers.email_tasks import send_supplier_order_email

        # Supplier orders left pending are queued again by the cron job
        try:
            for supplier_order in supplier_orders:
                send_supplier_order_email.delay(str(supplier_order.id))
        except OperationalError as exc:
            logger.error("Could not queue emails for order %s: %s", order_id, exc)

        logger.info(
            "Order %s finalized: %d supplier orders queued", order_id, len(supplier_orders)
        )
        return FinalizeOrderResponse(
            order_id=order_id,
            supplier_orders=supplier_orders,
            redirect_to=f"/{ctx.organization_slug}/orders/{order_id}/confirmation",
        )

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    async def _set_status(self, order_id: UUID, new_status: OrderStatus) -> OrderResponse:
        result = await (
            self.client.table("orders")
            .update({"status": new_status.value, "updated_at": _now().isoformat()})
            .eq("id", str(order_id))
            .execute()
        )
        return OrderResponse(**result.data[0])

    async def archive_order(self, order_id: UUID) -> OrderResponse:
        ctx = await self.session.get_order_context(str(order_id))
        if ctx.order["status"] not in {s.value for s in OPEN_ORDER_STATUSES}:
            raise _bad_request("ORDER_NOT_ARCHIVABLE", "Only draft or review orders can be archived")
        return await self._set_status(order_id, OrderStatus.archived)

    async def restore_order(self, order_id: UUID) -> OrderResponse:
        """Archived orders come back in review."""
        ctx = await self.session.get_order_context(str(order_id))
        if ctx.order["status"] != OrderStatus.archived.value:
            raise _bad_request("ORDER_NOT_ARCHIVED", "Only archived orders can be restored")
        return await self._set_status(order_id, OrderStatus.review)

    async def cancel_order(self, order_id: UUID) -> OrderResponse:
        ctx = await self.session.get_order_context(str(order_id))
        _ensure_editable(ctx.order)
        return await self._set_status(order_id, OrderStatus.cancelled)

    async def delete_order(self, order_id: UUID) -> None:
        """Permanently delete an archived order. Admins only."""
        ctx = await self.session.get_order_context(str(order_id))
        if ctx.role != MembershipRole.admin:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "INSUFFICIENT_ROLE", "message": "Only admins can delete orders"},
            )
        if ctx.order["status"] != OrderStatus.archived.value:
            raise _bad_request("ORDER_NOT_ARCHIVED", "Only archived orders can be deleted")

        await self.client.table("order_items").delete().eq("order_id", str(order_id)).execute()
        await self.client.table("orders").delete().eq("id", str(order_id)).execute()
        logger.info("Order %s deleted", order_id)

    # -----------------------------------------------------------------------
    # Email status
    # -----------------------------------------------------------------------

    async def get_email_status(self, order_id: UUID) -> EmailStatusResponse:
        await self.session.get_order_context(str(order_id))

        result = await (
            self.client.table("supplier_orders")
            .select("*")
            .eq("order_id", str(order_id))
            .order("created_at")
            .execute()
        )
        supplier_orders = [SupplierOrderResponse(**r) for r in result.data or []]
        any_sent = any(so.status == SupplierOrderStatus.sent for so in supplier_orders)
        return EmailStatusResponse(
            order_id=order_id,
            email_status="sent" if any_sent else None,
            supplier_orders=supplier_orders,
        )
