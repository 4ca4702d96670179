"""
Protected pages.

Each route runs the layout guards and returns a page view model, or
redirects. The `/{slug}` routes catch every other path, so this router is
included last.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from supplai.core.dependencies import (
    build_org_layout,
    get_org_layout,
    get_session_service,
    require_organizations,
    require_session,
)
from supplai.core.exceptions import redirect
from supplai.core.permissions import admin_only
from supplai.models.member import MembershipRole
from supplai.models.order import OPEN_ORDER_STATUSES, OrderStatus
from supplai.models.supplier import ContactMethod, SupplierCategory
from supplai.routers.history import get_history_filter, get_history_service
from supplai.routers.orders import get_order_service
from supplai.routers.organizations import get_org_service
from supplai.routers.suppliers import get_supplier_service
from supplai.schemas.auth import UserSession
from supplai.schemas.history import HistoryFilter
from supplai.schemas.order import OrderReviewResponse
from supplai.schemas.organization import OrganizationContext
from supplai.schemas.page import (
    DashboardPageResponse,
    HistoryPageResponse,
    MembersPageResponse,
    NavItem,
    NewOrderPageResponse,
    OnboardingPageResponse,
    OrderPageResponse,
    OrganizationLayout,
    SupplierFormPageResponse,
    SuppliersPageResponse,
)
from supplai.services.history_service import HistoryService
from supplai.services.order_service import OrderService
from supplai.services.organization_service import OrganizationService
from supplai.services.session_service import SessionService
from supplai.services.supplier_service import SupplierService

router = APIRouter()


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "ORG_NOT_FOUND", "message": "Organization not found"},
    )


def _order_actions(review: OrderReviewResponse) -> list[NavItem]:
    base = f"/api/v1/orders/{review.order.id}"
    order_status = review.order.status

    if order_status in OPEN_ORDER_STATUSES:
        return [
            NavItem(label="Send order", href=f"{base}/finalize"),
            NavItem(label="Archive", href=f"{base}/archive"),
            NavItem(label="Cancel", href=f"{base}/cancel"),
        ]
    if order_status == OrderStatus.archived:
        return [NavItem(label="Restore", href=f"{base}/restore")] + admin_only(
            review.user_role, [NavItem(label="Delete", href=base)], fallback=[]
        )
    return []


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

@router.get("/dashboard", summary="Dashboard entry")
async def dashboard(
    user: UserSession = Depends(require_session),
    service: SessionService = Depends(get_session_service),
) -> None:
    """Send the user to their default organization, or to onboarding."""
    organization = await service.get_default_organization()
    if organization is None:
        raise redirect("/onboarding")
    raise redirect(f"/{organization.slug}")


@router.get("/onboarding", response_model=OnboardingPageResponse, summary="Onboarding page")
async def onboarding_page(
    create: bool = False,
    user: UserSession = Depends(require_session),
    service: SessionService = Depends(get_session_service),
) -> OnboardingPageResponse:
    """
    First organization setup, or another organization with `create=true`.

    Users that already belong somewhere go back to their first organization,
    and only admins may create more.
    """
    organizations = await service.get_user_organizations()
    if organizations:
        if not create or not any(o.is_admin for o in organizations):
            raise redirect(f"/{organizations[0].slug}")

    return OnboardingPageResponse(
        title="Create your organization",
        description="Set up the organization your team orders for",
        is_first_org=not organizations,
        full_name=user.full_name,
    )


@router.get("/orders/new", summary="New order in the default organization")
async def new_order_entry(
    organizations: list[OrganizationContext] = Depends(require_organizations),
) -> None:
    raise redirect(f"/{organizations[0].slug}/orders/new")


@router.get("/orders/{order_id}", summary="Order link without organization")
async def order_entry(
    order_id: UUID,
    user: UserSession = Depends(require_session),
    service: SessionService = Depends(get_session_service),
) -> None:
    ctx = await service.get_order_context(str(order_id))
    raise redirect(f"/{ctx.organization_slug}/orders/{order_id}")


# ---------------------------------------------------------------------------
# Organization pages
# ---------------------------------------------------------------------------

@router.get("/{slug}", response_model=DashboardPageResponse, summary="Organization home")
async def organization_home(
    layout: OrganizationLayout = Depends(get_org_layout),
    orders: OrderService = Depends(get_order_service),
) -> DashboardPageResponse:
    recent = await orders.list_recent_orders(layout.organization.id)
    return DashboardPageResponse(
        title=layout.organization.name,
        layout=layout,
        recent_orders=recent,
    )


@router.get("/{slug}/suppliers", response_model=SuppliersPageResponse, summary="Suppliers page")
async def suppliers_page(
    layout: OrganizationLayout = Depends(get_org_layout),
    suppliers: SupplierService = Depends(get_supplier_service),
) -> SuppliersPageResponse:
    organization = layout.organization
    result = await suppliers.list_suppliers(organization.id)
    return SuppliersPageResponse(
        title="Suppliers",
        layout=layout,
        suppliers=result.suppliers,
        actions=admin_only(
            organization.role,
            [NavItem(label="New supplier", href=f"/{organization.slug}/suppliers/new")],
            fallback=[],
        ),
    )


@router.get(
    "/{slug}/suppliers/new",
    response_model=SupplierFormPageResponse,
    summary="New supplier form",
)
async def new_supplier_page(
    layout: OrganizationLayout = Depends(get_org_layout),
) -> SupplierFormPageResponse:
    """Admins only; everyone else goes back to the supplier list."""
    organization = layout.organization
    if not organization.is_admin:
        raise redirect(f"/{organization.slug}/suppliers")

    return SupplierFormPageResponse(
        title="New supplier",
        layout=layout,
        categories=list(SupplierCategory),
        contact_methods=list(ContactMethod),
    )


@router.get(
    "/{slug}/suppliers/{supplier_id}",
    response_model=SupplierFormPageResponse,
    summary="Edit supplier form",
)
async def edit_supplier_page(
    supplier_id: UUID,
    layout: OrganizationLayout = Depends(get_org_layout),
    suppliers: SupplierService = Depends(get_supplier_service),
) -> SupplierFormPageResponse:
    organization = layout.organization
    if not organization.is_admin:
        raise redirect(f"/{organization.slug}/suppliers")

    supplier = await suppliers.get_supplier(organization.id, supplier_id)
    return SupplierFormPageResponse(
        title=f"Edit {supplier.name}",
        layout=layout,
        supplier=supplier,
        categories=list(SupplierCategory),
        contact_methods=list(ContactMethod),
    )


@router.get("/{slug}/orders/new", response_model=NewOrderPageResponse, summary="New order")
async def new_order_page(
    slug: str,
    user: UserSession = Depends(require_session),
    service: SessionService = Depends(get_session_service),
    orders: OrderService = Depends(get_order_service),
) -> NewOrderPageResponse:
    """
    Resume the user's recent draft (redirect to it) or start a new one.

    Fetch user -> fetch organization -> fetch membership. A missing
    organization is a 404; a missing membership goes back to `/`.
    """
    org = await service.find_organization(slug)
    if org is None:
        raise _not_found()

    membership = await service.find_membership(org["id"])
    if membership is None:
        raise redirect("/")

    organization = OrganizationContext(
        id=org["id"],
        name=org["name"],
        slug=org["slug"],
        role=membership["role"],
        is_admin=membership["role"] == MembershipRole.admin.value,
    )
    draft = await orders.get_or_create_draft(organization, user)
    if draft.resumed:
        raise redirect(f"/{organization.slug}/orders/{draft.order_id}")

    organizations = await service.get_user_organizations()
    return NewOrderPageResponse(
        title="New order",
        layout=build_org_layout(organization, organizations or [organization], user),
        order_id=draft.order_id,
        organization_id=organization.id,
    )


@router.get("/{slug}/orders/{order_id}", response_model=OrderPageResponse, summary="Order page")
async def order_page(
    order_id: UUID,
    layout: OrganizationLayout = Depends(get_org_layout),
    orders: OrderService = Depends(get_order_service),
) -> OrderPageResponse:
    review = await orders.get_order_review(order_id)
    if review.organization_slug != layout.organization.slug:
        raise redirect(f"/{review.organization_slug}/orders/{order_id}")

    return OrderPageResponse(
        title="Order",
        layout=layout,
        review=review,
        email_status_url=f"/api/v1/orders/{order_id}/email-status",
        actions=_order_actions(review),
    )


@router.get("/{slug}/history", response_model=HistoryPageResponse, summary="History page")
async def history_page(
    layout: OrganizationLayout = Depends(get_org_layout),
    filters: HistoryFilter = Depends(get_history_filter),
    history: HistoryService = Depends(get_history_service),
) -> HistoryPageResponse:
    return HistoryPageResponse(
        title="History",
        layout=layout,
        history=await history.get_history(layout.organization.id, filters),
    )


@router.get(
    "/{slug}/settings/members",
    response_model=MembersPageResponse,
    summary="Members page",
)
async def members_page(
    layout: OrganizationLayout = Depends(get_org_layout),
    service: OrganizationService = Depends(get_org_service),
) -> MembersPageResponse:
    """Members and pending invitations; only admins can manage them."""
    organization = layout.organization
    members = await service.list_members(organization.id)
    invitations = []
    if organization.is_admin:
        invitations = (await service.list_invitations(organization.id)).invitations

    return MembersPageResponse(
        title="Members",
        layout=layout,
        members=members.members,
        invitations=invitations,
        actions=admin_only(
            organization.role,
            [NavItem(label="Invite member", href=f"/api/v1/organizations/{organization.slug}/invite")],
            fallback=[],
        ),
    )
