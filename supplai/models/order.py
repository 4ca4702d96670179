"""
Order, order item and supplier order enumerations.
"""

from __future__ import annotations

import enum


class OrderStatus(str, enum.Enum):
    """Lifecycle of an order bundle."""

    draft = "draft"
    review = "review"
    sent = "sent"
    archived = "archived"
    cancelled = "cancelled"


# Orders that can still be edited, archived or finalized
OPEN_ORDER_STATUSES = (OrderStatus.draft, OrderStatus.review)


class ItemUnit(str, enum.Enum):
    """Unit of an order item quantity."""

    kg = "kg"
    g = "g"
    units = "units"
    dozen = "dozen"
    liters = "liters"
    ml = "ml"
    packages = "packages"
    boxes = "boxes"


class SupplierOrderStatus(str, enum.Enum):
    """Delivery state of the share of an order sent to one supplier."""

    pending = "pending"
    sending = "sending"
    sent = "sent"
    failed = "failed"
    delivered = "delivered"
