"""
Supplier business logic.

Suppliers belong to one organization and are soft deleted (deleted_at).
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from fastapi import HTTPException, status
from supabase import AsyncClient, PostgrestAPIError

from supplai.schemas.organization import OrganizationContext
from supplai.schemas.supplier import (
    SupplierCreateRequest,
    SupplierQuickCreateRequest,
    SupplierResponse,
    SupplierSavedResponse,
    SuppliersListResponse,
    SupplierUpdateRequest,
)

logger = logging.getLogger(__name__)


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "SUPPLIER_NOT_FOUND", "message": "Supplier not found"},
    )


class SupplierService:
    """Handles all supplier operations."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    # -----------------------------------------------------------------------
    # Read
    # -----------------------------------------------------------------------

    async def list_suppliers(self, organization_id: UUID) -> SuppliersListResponse:
        """Non-deleted suppliers of the organization, by name."""
        result = await (
            self.client.table("suppliers")
            .select("*")
            .eq("organization_id", str(organization_id))
            .is_("deleted_at", "null")
            .order("name")
            .execute()
        )
        suppliers = [SupplierResponse(**row) for row in result.data or []]
        return SuppliersListResponse(suppliers=suppliers, total=len(suppliers))

    async def get_supplier(self, organization_id: UUID, supplier_id: UUID) -> SupplierResponse:
        result = await (
            self.client.table("suppliers")
            .select("*")
            .eq("organization_id", str(organization_id))
            .eq("id", str(supplier_id))
            .is_("deleted_at", "null")
            .limit(1)
            .execute()
        )
        if not result.data:
            raise _not_found()
        return SupplierResponse(**result.data[0])

    # -----------------------------------------------------------------------
    # Write
    # -----------------------------------------------------------------------

    async def create_supplier(
        self, org: OrganizationContext, data: SupplierCreateRequest
    ) -> SupplierSavedResponse:
        row = data.model_dump(mode="json")
        row["organization_id"] = str(org.id)

        result = await self.client.table("suppliers").insert(row).execute()
        supplier = SupplierResponse(**result.data[0])
        logger.info("Supplier %s created in org %s", supplier.id, org.slug)

        return SupplierSavedResponse(supplier=supplier, redirect_to=f"/{org.slug}/suppliers")

    async def update_supplier(
        self, org: OrganizationContext, supplier_id: UUID, data: SupplierUpdateRequest
    ) -> SupplierSavedResponse:
        row = data.model_dump(mode="json")
        row["updated_at"] = datetime.now(UTC).isoformat()

        result = await (
            self.client.table("suppliers")
            .update(row)
            .eq("id", str(supplier_id))
            .eq("organization_id", str(org.id))
            .is_("deleted_at", "null")
            .execute()
        )
        if not result.data:
            raise _not_found()

        return SupplierSavedResponse(
            supplier=SupplierResponse(**result.data[0]),
            redirect_to=f"/{org.slug}/suppliers",
        )

    async def delete_supplier(self, org: OrganizationContext, supplier_id: UUID) -> None:
        """Soft delete: past orders keep pointing at the supplier."""
        result = await (
            self.client.table("suppliers")
            .update({"deleted_at": datetime.now(UTC).isoformat()})
            .eq("id", str(supplier_id))
            .eq("organization_id", str(org.id))
            .is_("deleted_at", "null")
            .execute()
        )
        if not result.data:
            raise _not_found()
        logger.info("Supplier %s deleted in org %s", supplier_id, org.slug)

    async def create_quick_supplier(
        self, organization_id: UUID, data: SupplierQuickCreateRequest
    ) -> SupplierResponse:
        """Inline creation from the order review screen."""
        row = data.model_dump(mode="json", exclude_none=True)
        row["organization_id"] = str(organization_id)

        try:
            result = await self.client.table("suppliers").insert(row).execute()
        except PostgrestAPIError as exc:
            logger.error("Error creating supplier: %s", exc.message)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "SUPPLIER_CREATE_FAILED", "message": "Could not create the supplier"},
            )

        return SupplierResponse(**result.data[0])
