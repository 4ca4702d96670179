"""
Order schemas.

Request/response models for orders, order items and supplier orders.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from supplai.models.member import MembershipRole
from supplai.models.order import ItemUnit, OrderStatus, SupplierOrderStatus
from supplai.schemas.supplier import SupplierResponse


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

class OrderResponse(BaseModel):
    """Order bundle."""

    id: UUID
    organization_id: UUID
    created_by: UUID | None = None
    status: OrderStatus
    sent_at: datetime | None = None
    created_at: datetime | None = None


class NewOrderResponse(BaseModel):
    """Draft order to continue with (new or resumed)."""

    order_id: UUID
    organization_id: UUID
    organization_slug: str
    resumed: bool


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

class OrderItemResponse(BaseModel):
    id: UUID
    order_id: UUID
    supplier_id: UUID | None = None
    product: str
    quantity: float
    unit: ItemUnit
    original_text: str | None = None
    confidence_score: float | None = None
    created_at: datetime | None = None


class OrderItemCreateRequest(BaseModel):
    """Request body for POST /orders/{order_id}/items."""

    supplier_id: UUID
    product: str = Field(min_length=1, max_length=200)
    quantity: float = Field(gt=0)
    unit: ItemUnit


class OrderItemUpdateRequest(BaseModel):
    """Request body for PATCH /orders/items/{item_id}."""

    product: str | None = Field(default=None, min_length=1, max_length=200)
    quantity: float | None = Field(default=None, gt=0)
    unit: ItemUnit | None = None


class OrderItemReassignRequest(BaseModel):
    """Move an item to another supplier, or unassign it with null."""

    supplier_id: UUID | None


class OrderItemInput(BaseModel):
    """
    One item of a batch save.

    Items created on the client carry a `temp-...` id until saved.
    """

    id: str
    supplier_id: UUID | None = None
    product: str = Field(min_length=1, max_length=200)
    quantity: float = Field(gt=0)
    unit: ItemUnit
    confidence_score: float | None = None
    original_text: str | None = None

    @property
    def is_new(self) -> bool:
        return self.id.startswith("temp-")


class OrderItemsSaveRequest(BaseModel):
    items: list[OrderItemInput]


# ---------------------------------------------------------------------------
# Review / finalize
# ---------------------------------------------------------------------------

class OrderReviewResponse(BaseModel):
    """Everything the review screen needs."""

    order: OrderResponse
    organization_slug: str
    items: list[OrderItemResponse]
    suppliers: list[SupplierResponse]
    user_role: MembershipRole


class SupplierOrderResponse(BaseModel):
    """Share of an order sent to one supplier."""

    id: UUID
    order_id: UUID
    supplier_id: UUID
    status: SupplierOrderStatus
    error_message: str | None = None
    sent_at: datetime | None = None
    created_at: datetime | None = None


class FinalizeOrderResponse(BaseModel):
    order_id: UUID
    supplier_orders: list[SupplierOrderResponse]
    redirect_to: str


class EmailStatusResponse(BaseModel):
    """Snapshot of the supplier emails of an order."""

    order_id: UUID
    email_status: Literal["sent"] | None
    supplier_orders: list[SupplierOrderResponse]


class EmailStatusEvent(BaseModel):
    """Pushed over the websocket when a supplier email goes out."""

    type: Literal["email_status"] = "email_status"
    order_id: UUID
    supplier_order_id: UUID | None = None
    status: Literal["sent"] = "sent"
