"""
Session and organization resolution.

Fetch user -> fetch organization by slug -> fetch membership. Every query
runs through the request's Supabase client, so row level security decides
what the current user can see.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException, status
from supabase import AsyncClient, PostgrestAPIError

from supplai.models.member import MembershipRole
from supplai.schemas.auth import UserSession
from supplai.schemas.organization import OrganizationContext

logger = logging.getLogger(__name__)


@dataclass
class AuthedContext:
    """User and membership for an action scoped to one organization."""

    user: UserSession
    membership: dict[str, Any]

    @property
    def role(self) -> MembershipRole:
        return MembershipRole(self.membership["role"])

    @property
    def is_admin(self) -> bool:
        return self.role == MembershipRole.admin


@dataclass
class OrderContext(AuthedContext):
    """AuthedContext plus the order the action works on."""

    order: dict[str, Any]
    organization_slug: str


class SessionService:
    """Resolves the current user, their organizations and memberships."""

    def __init__(self, client: AsyncClient, claims: dict[str, Any] | None) -> None:
        self.client = client
        self.claims = claims

    @property
    def user_id(self) -> str | None:
        if self.claims is None:
            return None
        return self.claims.get("sub")

    # -----------------------------------------------------------------------
    # User
    # -----------------------------------------------------------------------

    async def get_session(self) -> UserSession | None:
        """
        Return the current user session, or None if not authenticated.

        The name comes from the user's profile row.
        """
        if self.claims is None:
            return None

        result = await (
            self.client.table("profiles")
            .select("full_name")
            .eq("id", self.user_id)
            .limit(1)
            .execute()
        )
        profile = result.data[0] if result.data else None
        full_name = profile.get("full_name") if profile else None
        if full_name is None:
            full_name = (self.claims.get("user_metadata") or {}).get("full_name")

        return UserSession(
            id=self.user_id,
            email=self.claims.get("email", ""),
            full_name=full_name,
        )

    # -----------------------------------------------------------------------
    # Organizations
    # -----------------------------------------------------------------------

    async def get_user_organizations(self) -> list[OrganizationContext]:
        """All organizations of the current user, first joined first."""
        if self.claims is None:
            return []

        try:
            result = await self.client.rpc("get_user_organizations", {}).execute()
        except PostgrestAPIError as exc:
            logger.warning("get_user_organizations failed: %s", exc.message)
            return []

        return [
            OrganizationContext(
                id=row["organization_id"],
                name=row["organization_name"],
                slug=row["organization_slug"],
                role=row["user_role"],
                is_admin=row["user_role"] == MembershipRole.admin.value,
            )
            for row in result.data or []
        ]

    async def get_default_organization(self) -> OrganizationContext | None:
        organizations = await self.get_user_organizations()
        if not organizations:
            return None
        return organizations[0]

    async def find_organization(self, slug: str) -> dict[str, Any] | None:
        """Organization row by slug, without checking membership."""
        result = await (
            self.client.table("organizations")
            .select("id, name, slug")
            .eq("slug", slug)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    async def find_membership(self, organization_id: str) -> dict[str, Any] | None:
        """The current user's membership row in an organization."""
        if self.user_id is None:
            return None
        result = await (
            self.client.table("memberships")
            .select("id, role, organization_id")
            .eq("user_id", self.user_id)
            .eq("organization_id", organization_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    async def get_organization_by_slug(self, slug: str) -> OrganizationContext | None:
        """
        Organization by slug with the current user's role.

        Returns None if there is no user, no such organization, or the user
        is not a member.
        """
        if self.user_id is None:
            return None

        org = await self.find_organization(slug)
        if org is None:
            return None

        membership = await self.find_membership(org["id"])
        if membership is None:
            return None

        return OrganizationContext(
            id=org["id"],
            name=org["name"],
            slug=org["slug"],
            role=membership["role"],
            is_admin=membership["role"] == MembershipRole.admin.value,
        )

    async def get_user_role(self, organization_id: str) -> MembershipRole | None:
        try:
            result = await self.client.rpc(
                "get_user_role", {"organization_id": organization_id}
            ).execute()
        except PostgrestAPIError as exc:
            logger.warning("get_user_role failed for org %s: %s", organization_id, exc.message)
            return None
        if not result.data:
            return None
        return MembershipRole(result.data)

    async def is_user_admin(self, organization_id: str) -> bool:
        return await self.get_user_role(organization_id) == MembershipRole.admin

    # -----------------------------------------------------------------------
    # Action contexts
    # -----------------------------------------------------------------------

    async def require_user(self) -> UserSession:
        session = await self.get_session()
        if session is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"code": "UNAUTHORIZED", "message": "Authentication required"},
            )
        return session

    async def get_authed_context(self, organization_id: str) -> AuthedContext:
        """
        Verify the user is signed in and a member of the organization.

        Raises 401 without a user, 403 without a membership.
        """
        user = await self.require_user()

        membership = await self.find_membership(organization_id)
        if membership is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "FORBIDDEN", "message": "You are not a member of this organization"},
            )

        return AuthedContext(user=user, membership=membership)

    async def get_order_context(self, order_id: str) -> OrderContext:
        """
        Get Order -> Check Auth -> Check Membership.

        Raises 401 without a user, 404 if the order is not visible,
        403 without a membership in the order's organization.
        """
        user = await self.require_user()

        result = await (
            self.client.table("orders").select("*").eq("id", order_id).limit(1).execute()
        )
        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "ORDER_NOT_FOUND", "message": "Order not found"},
            )
        order = result.data[0]

        membership = await self.find_membership(order["organization_id"])
        if membership is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "FORBIDDEN", "message": "You do not have access to this order"},
            )

        org_result = await (
            self.client.table("organizations")
            .select("slug")
            .eq("id", order["organization_id"])
            .limit(1)
            .execute()
        )
        slug = org_result.data[0]["slug"] if org_result.data else ""

        return OrderContext(user=user, membership=membership, order=order, organization_slug=slug)
