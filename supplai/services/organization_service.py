"""
Organization business logic.

Handles org creation, member management, invitations.
All queries scoped by organization_id and run under the caller's RLS policies
unless an admin client is passed explicitly.
"""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import HTTPException, status
from kombu.exceptions import OperationalError
from supabase import AsyncClient, PostgrestAPIError

from supplai.core.config import settings
from supplai.models.member import MembershipRole
from supplai.schemas.auth import UserSession
from supplai.schemas.organization import (
    AcceptInvitationResponse,
    InvitationInfoResponse,
    InvitationResponse,
    InvitationsListResponse,
    InviteRequest,
    MemberResponse,
    MembersListResponse,
    OrganizationContext,
    OrganizationCreateRequest,
    OrganizationResponse,
    OrganizationUpdateRequest,
)

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(hours=48)


def _now() -> datetime:
    return datetime.now(UTC)


class OrganizationService:
    """Handles all organization operations."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    async def _get_slug(self, organization_id: str) -> str | None:
        result = await (
            self.client.table("organizations")
            .select("slug")
            .eq("id", organization_id)
            .limit(1)
            .execute()
        )
        return result.data[0]["slug"] if result.data else None

    # -----------------------------------------------------------------------
    # Create Organization
    # -----------------------------------------------------------------------

    async def create_organization(self, data: OrganizationCreateRequest) -> OrganizationResponse:
        """
        Create a new organization with the current user as admin.

        The membership is created by the database function in the same
        transaction. A taken slug is a 409.
        """
        try:
            result = await self.client.rpc(
                "create_organization_with_membership",
                {"org_name": data.name, "org_slug": data.slug},
            ).execute()
        except PostgrestAPIError as exc:
            if "duplicate key" in (exc.message or ""):
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail={"code": "SLUG_TAKEN", "message": "An organization with that slug already exists"},
                )
            logger.error("create_organization_with_membership failed: %s", exc.message)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "ORG_CREATE_FAILED", "message": "Could not create the organization"},
            )

        organization_id = str(result.data)
        slug = await self._get_slug(organization_id)
        logger.info("Organization %s created (slug=%s)", organization_id, slug)
        return OrganizationResponse(id=organization_id, name=data.name, slug=slug or "")

    # -----------------------------------------------------------------------
    # Update Organization
    # -----------------------------------------------------------------------

    async def update_organization(
        self, org: OrganizationContext, data: OrganizationUpdateRequest
    ) -> OrganizationResponse:
        try:
            await (
                self.client.table("organizations")
                .update({"name": data.name, "updated_at": _now().isoformat()})
                .eq("id", str(org.id))
                .execute()
            )
        except PostgrestAPIError as exc:
            logger.error("Organization update failed for %s: %s", org.id, exc.message)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "ORG_UPDATE_FAILED", "message": "Could not update the organization"},
            )

        return OrganizationResponse(id=org.id, name=data.name, slug=org.slug)

    # -----------------------------------------------------------------------
    # List Members
    # -----------------------------------------------------------------------

    async def list_members(self, organization_id: UUID) -> MembersListResponse:
        """List all members of an organization with profile details."""
        result = await (
            self.client.table("memberships")
            .select("id, user_id, role, joined_at")
            .eq("organization_id", str(organization_id))
            .order("joined_at")
            .execute()
        )
        memberships = result.data or []

        profiles: dict[str, dict[str, Any]] = {}
        user_ids = [m["user_id"] for m in memberships]
        if user_ids:
            profile_result = await (
                self.client.table("profiles")
                .select("id, email, full_name")
                .in_("id", user_ids)
                .execute()
            )
            profiles = {p["id"]: p for p in profile_result.data or []}

        members = [
            MemberResponse(
                id=m["id"],
                user_id=m["user_id"],
                email=profiles.get(m["user_id"], {}).get("email"),
                full_name=profiles.get(m["user_id"], {}).get("full_name"),
                role=m["role"],
                joined_at=m.get("joined_at"),
            )
            for m in memberships
        ]

        return MembersListResponse(members=members, total=len(members))

    # -----------------------------------------------------------------------
    # Invite Member
    # -----------------------------------------------------------------------

    async def invite_member(
        self, org: OrganizationContext, data: InviteRequest, inviter: UserSession
    ) -> InvitationResponse:
        """
        Create an invitation for a new member.

        - Inviter must be a member of the organization
        - One pending invitation per email
        - Existing members cannot be invited again
        - Queues the invitation email; a queueing failure does not fail
          the invitation, the link can still be shared by hand
        """
        email = data.email.lower()

        inviter_membership = await (
            self.client.table("memberships")
            .select("id")
            .eq("organization_id", str(org.id))
            .eq("user_id", str(inviter.id))
            .limit(1)
            .execute()
        )
        if not inviter_membership.data:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "NOT_A_MEMBER", "message": "You cannot invite people to this organization"},
            )

        existing_invite = await (
            self.client.table("invitations")
            .select("id")
            .eq("organization_id", str(org.id))
            .eq("email", email)
            .is_("accepted_at", "null")
            .gte("expires_at", _now().isoformat())
            .limit(1)
            .execute()
        )
        if existing_invite.data:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "INVITE_EXISTS", "message": "A pending invitation already exists for this email"},
            )

        if await self._is_member_email(org.id, email):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "ALREADY_MEMBER", "message": "User is already a member of this organization"},
            )

        token = secrets.token_urlsafe(32)
        expires_at = _now() + INVITATION_TTL
        result = await (
            self.client.table("invitations")
            .insert(
                {
                    "organization_id": str(org.id),
                    "email": email,
                    "role": data.role.value,
                    "token": token,
                    "invited_by": str(inviter.id),
                    "expires_at": expires_at.isoformat(),
                }
            )
            .execute()
        )
        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVITE_FAILED", "message": "Could not create the invitation"},
            )
        invitation = result.data[0]

        self._queue_invitation_email(
            to_email=email,
            inviter_name=inviter.full_name or inviter.email or "A teammate",
            organization_name=org.name,
            role=data.role.value,
            invitation_token=token,
        )

        return InvitationResponse(**invitation)

    async def _is_member_email(self, organization_id: UUID, email: str) -> bool:
        profile = await (
            self.client.table("profiles").select("id").eq("email", email).limit(1).execute()
        )
        if not profile.data:
            return False
        membership = await (
            self.client.table("memberships")
            .select("id")
            .eq("organization_id", str(organization_id))
            .eq("user_id", profile.data[0]["id"])
            .limit(1)
            .execute()
        )
        return bool(membership.data)

    def _queue_invitation_email(self, **kwargs: str) -> None:
        from supplai.workers.email_tasks import send_invitation_email

        try:
            send_invitation_email.delay(site_url=settings.SITE_URL, **kwargs)
        except OperationalError as exc:
            logger.error("Could not queue invitation email to %s: %s", kwargs["to_email"], exc)

    # -----------------------------------------------------------------------
    # Pending invitations
    # -----------------------------------------------------------------------

    async def list_invitations(self, organization_id: UUID) -> InvitationsListResponse:
        result = await (
            self.client.table("invitations")
            .select("*")
            .eq("organization_id", str(organization_id))
            .is_("accepted_at", "null")
            .gte("expires_at", _now().isoformat())
            .order("created_at", desc=True)
            .execute()
        )
        invitations = [InvitationResponse(**row) for row in result.data or []]
        return InvitationsListResponse(invitations=invitations, total=len(invitations))

    async def cancel_invitation(self, organization_id: UUID, invitation_id: UUID) -> None:
        result = await (
            self.client.table("invitations")
            .delete()
            .eq("id", str(invitation_id))
            .eq("organization_id", str(organization_id))
            .execute()
        )
        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "INVITATION_NOT_FOUND", "message": "Invitation not found"},
            )

    # -----------------------------------------------------------------------
    # Accept / reject by token
    # -----------------------------------------------------------------------

    async def accept_invitation(self, token: str) -> AcceptInvitationResponse:
        try:
            result = await self.client.rpc(
                "accept_invitation", {"invitation_token": token}
            ).execute()
        except PostgrestAPIError as exc:
            message = exc.message or ""
            if "expired" in message:
                code, text = "INVITATION_EXPIRED", "The invitation has expired"
            elif "already a member" in message:
                code, text = "ALREADY_MEMBER", "You are already a member of this organization"
            else:
                code, text = "INVITATION_INVALID", "Invalid or expired invitation"
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": code, "message": text},
            )

        organization_id = str(result.data)
        return AcceptInvitationResponse(
            organization_id=organization_id,
            slug=await self._get_slug(organization_id),
        )

    async def reject_invitation(self, token: str) -> None:
        """Expire a pending invitation immediately."""
        try:
            await (
                self.client.table("invitations")
                .update({"expires_at": _now().isoformat()})
                .eq("token", token)
                .is_("accepted_at", "null")
                .execute()
            )
        except PostgrestAPIError as exc:
            logger.error("Rejecting invitation failed: %s", exc.message)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "INVITATION_REJECT_FAILED", "message": "Could not reject the invitation"},
            )

    async def get_invitation_by_token(self, token: str) -> InvitationInfoResponse | None:
        """Public invitation details, or None if the token is unknown."""
        try:
            result = await self.client.rpc(
                "get_invitation_by_token", {"invitation_token": token}
            ).execute()
        except PostgrestAPIError as exc:
            logger.error("Error getting invitation: %s", exc.message)
            return None

        if not result.data:
            return None
        return InvitationInfoResponse(**result.data[0])

    # -----------------------------------------------------------------------
    # Member management
    # -----------------------------------------------------------------------

    async def _admin_user_ids(self, organization_id: UUID) -> list[str]:
        result = await (
            self.client.table("memberships")
            .select("id, user_id")
            .eq("organization_id", str(organization_id))
            .eq("role", MembershipRole.admin.value)
            .execute()
        )
        return [row["user_id"] for row in result.data or []]

    async def _ensure_not_last_admin(self, organization_id: UUID, user_id: UUID, message: str) -> None:
        admins = await self._admin_user_ids(organization_id)
        if admins == [str(user_id)]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "LAST_ADMIN", "message": message},
            )

    async def remove_member(self, organization_id: UUID, user_id: UUID) -> None:
        await self._ensure_not_last_admin(
            organization_id, user_id, "You cannot remove the only admin"
        )

        result = await (
            self.client.table("memberships")
            .delete()
            .eq("organization_id", str(organization_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "MEMBER_NOT_FOUND", "message": "Member not found"},
            )

    async def update_member_role(
        self, organization_id: UUID, user_id: UUID, role: MembershipRole
    ) -> None:
        if role == MembershipRole.member:
            await self._ensure_not_last_admin(
                organization_id, user_id, "There must be at least one admin"
            )

        result = await (
            self.client.table("memberships")
            .update({"role": role.value})
            .eq("organization_id", str(organization_id))
            .eq("user_id", str(user_id))
            .execute()
        )
        if not result.data:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail={"code": "MEMBER_NOT_FOUND", "message": "Member not found"},
            )
