"""
Page view models.

Page routes run their guards and return these instead of rendered HTML.
"""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel

from supplai.models.supplier import ContactMethod, SupplierCategory
from supplai.schemas.auth import UserSession
from supplai.schemas.history import HistoryResponse
from supplai.schemas.order import OrderResponse, OrderReviewResponse
from supplai.schemas.organization import (
    InvitationInfoResponse,
    InvitationResponse,
    MemberResponse,
    OrganizationContext,
)
from supplai.schemas.supplier import SupplierResponse


class NavItem(BaseModel):
    label: str
    href: str


class PageResponse(BaseModel):
    title: str
    description: str | None = None


# ---------------------------------------------------------------------------
# Public pages
# ---------------------------------------------------------------------------

class HomePageResponse(PageResponse):
    authenticated: bool
    links: list[NavItem]


class AuthPageResponse(PageResponse):
    form: Literal["login", "register", "forgot_password", "reset_password", "verify_email", "confirm"]
    email: str | None = None
    invitation_token: str | None = None
    redirect_to: str | None = None
    error: str | None = None


class OnboardingPageResponse(PageResponse):
    is_first_org: bool
    full_name: str | None


class InvitePageResponse(PageResponse):
    state: Literal["not_found", "expired", "anonymous", "signed_in", "rejected"]
    invitation: InvitationInfoResponse | None = None
    accept_href: str | None = None
    reject_href: str | None = None


# ---------------------------------------------------------------------------
# Organization pages
# ---------------------------------------------------------------------------

class OrganizationLayout(BaseModel):
    """Top bar, organization switcher and bottom navigation."""

    organization: OrganizationContext
    organizations: list[OrganizationContext]
    user: UserSession
    navigation: list[NavItem]
    new_order_href: str


class OrgPageResponse(PageResponse):
    layout: OrganizationLayout


class DashboardPageResponse(OrgPageResponse):
    recent_orders: list[OrderResponse]


class SuppliersPageResponse(OrgPageResponse):
    suppliers: list[SupplierResponse]
    actions: list[NavItem]


class SupplierFormPageResponse(OrgPageResponse):
    supplier: SupplierResponse | None = None
    categories: list[SupplierCategory]
    contact_methods: list[ContactMethod]


class NewOrderPageResponse(OrgPageResponse):
    order_id: UUID
    organization_id: UUID


class OrderPageResponse(OrgPageResponse):
    review: OrderReviewResponse
    email_status_url: str
    actions: list[NavItem]


class HistoryPageResponse(OrgPageResponse):
    history: HistoryResponse


class MembersPageResponse(OrgPageResponse):
    members: list[MemberResponse]
    invitations: list[InvitationResponse]
    actions: list[NavItem]
