"""
Supplier enumerations.
"""

from __future__ import annotations

import enum


class SupplierCategory(str, enum.Enum):
    """What a supplier mostly sells."""

    fruits_vegetables = "fruits_vegetables"
    meats = "meats"
    fish_seafood = "fish_seafood"
    dry_goods = "dry_goods"
    dairy = "dairy"
    beverages = "beverages"
    cleaning = "cleaning"
    packaging = "packaging"
    other = "other"


class ContactMethod(str, enum.Enum):
    """How the supplier prefers to receive orders."""

    whatsapp = "whatsapp"
    email = "email"
    phone = "phone"
