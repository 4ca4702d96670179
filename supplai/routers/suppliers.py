"""
Supplier endpoints.

All routes are scoped to an organization. Members can read and quick-create
suppliers while reviewing an order; the supplier form is admin only.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from supabase import AsyncClient

from supplai.core.dependencies import get_org_member, get_supabase, require_role
from supplai.models.member import MembershipRole
from supplai.schemas.organization import OrganizationContext
from supplai.schemas.supplier import (
    SupplierCreateRequest,
    SupplierQuickCreateRequest,
    SupplierResponse,
    SupplierSavedResponse,
    SuppliersListResponse,
    SupplierUpdateRequest,
)
from supplai.services.supplier_service import SupplierService

router = APIRouter()


def get_supplier_service(client: AsyncClient = Depends(get_supabase)) -> SupplierService:
    """Dependency that constructs SupplierService."""
    return SupplierService(client=client)


@router.get(
    "/organizations/{slug}/suppliers",
    response_model=SuppliersListResponse,
    summary="List suppliers",
)
async def list_suppliers(
    org: OrganizationContext = Depends(get_org_member),
    service: SupplierService = Depends(get_supplier_service),
) -> SuppliersListResponse:
    return await service.list_suppliers(org.id)


@router.post(
    "/organizations/{slug}/suppliers",
    response_model=SupplierSavedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create supplier",
)
async def create_supplier(
    data: SupplierCreateRequest,
    org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
    service: SupplierService = Depends(get_supplier_service),
) -> SupplierSavedResponse:
    """Admin only. The form then goes back to /{slug}/suppliers."""
    return await service.create_supplier(org, data)


@router.post(
    "/organizations/{slug}/suppliers/quick",
    response_model=SupplierResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Quick-create supplier from order review",
)
async def create_quick_supplier(
    data: SupplierQuickCreateRequest,
    org: OrganizationContext = Depends(get_org_member),
    service: SupplierService = Depends(get_supplier_service),
) -> SupplierResponse:
    return await service.create_quick_supplier(org.id, data)


@router.get(
    "/organizations/{slug}/suppliers/{supplier_id}",
    response_model=SupplierResponse,
    summary="Get supplier",
)
async def get_supplier(
    supplier_id: UUID,
    org: OrganizationContext = Depends(get_org_member),
    service: SupplierService = Depends(get_supplier_service),
) -> SupplierResponse:
    return await service.get_supplier(org.id, supplier_id)


@router.put(
    "/organizations/{slug}/suppliers/{supplier_id}",
    response_model=SupplierSavedResponse,
    summary="Update supplier",
)
async def update_supplier(
    supplier_id: UUID,
    data: SupplierUpdateRequest,
    org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
    service: SupplierService = Depends(get_supplier_service),
) -> SupplierSavedResponse:
    return await service.update_supplier(org, supplier_id, data)


@router.delete(
    "/organizations/{slug}/suppliers/{supplier_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete supplier",
)
async def delete_supplier(
    supplier_id: UUID,
    org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
    service: SupplierService = Depends(get_supplier_service),
) -> None:
    await service.delete_supplier(org, supplier_id)
