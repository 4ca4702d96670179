"""
Enumerations for the rows stored in Supabase.

Tables themselves live in the Supabase project; these are the value sets
the application reads and writes.
"""

from supplai.models.member import MembershipRole
from supplai.models.order import ItemUnit, OPEN_ORDER_STATUSES, OrderStatus, SupplierOrderStatus
from supplai.models.supplier import ContactMethod, SupplierCategory

__all__ = [
    "MembershipRole",
    "OrderStatus",
    "OPEN_ORDER_STATUSES",
    "ItemUnit",
    "SupplierOrderStatus",
    "SupplierCategory",
    "ContactMethod",
]
