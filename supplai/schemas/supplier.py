"""
Supplier schemas.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from supplai.models.supplier import ContactMethod, SupplierCategory


class SupplierCreateRequest(BaseModel):
    """Request body for POST /organizations/{slug}/suppliers."""

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    preferred_contact_method: ContactMethod = ContactMethod.email
    category: SupplierCategory
    custom_keywords: list[str] = Field(default_factory=list)

    @field_validator("custom_keywords")
    @classmethod
    def strip_keywords(cls, v: list[str]) -> list[str]:
        return [k.strip() for k in v if k.strip()]


# Same shape: updates replace the editable fields
SupplierUpdateRequest = SupplierCreateRequest


class SupplierQuickCreateRequest(BaseModel):
    """Inline supplier creation from the order review screen."""

    name: str = Field(min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = None
    category: SupplierCategory = SupplierCategory.other

    @field_validator("email", mode="before")
    @classmethod
    def empty_email_is_none(cls, v: object) -> object:
        return None if v == "" else v


class SupplierResponse(BaseModel):
    """Supplier as stored for an organization."""

    id: UUID
    organization_id: UUID
    name: str
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    notes: str | None = None
    category: SupplierCategory
    preferred_contact_method: ContactMethod | None = None
    custom_keywords: list[str] = Field(default_factory=list)
    created_at: datetime | None = None

    @field_validator("custom_keywords", mode="before")
    @classmethod
    def null_keywords(cls, v: object) -> object:
        return v or []


class SuppliersListResponse(BaseModel):
    suppliers: list[SupplierResponse]
    total: int


class SupplierSavedResponse(BaseModel):
    """Created or updated supplier and where the form goes next."""

    supplier: SupplierResponse
    redirect_to: str
