"""
Organization endpoints.

Organization CRUD, member management, invitations.
Invitation token routes are declared before the /{slug} routes.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from supabase import AsyncClient

from supplai.core.dependencies import (
    get_admin_supabase,
    get_current_user,
    get_org_member,
    get_session_service,
    get_supabase,
    require_role,
)
from supplai.models.member import MembershipRole
from supplai.schemas.auth import MessageResponse, UserSession
from supplai.schemas.organization import (
    AcceptInvitationResponse,
    InvitationInfoResponse,
    InvitationResponse,
    InvitationsListResponse,
    InviteRequest,
    MemberRoleUpdateRequest,
    MembersListResponse,
    OrganizationContext,
    OrganizationCreateRequest,
    OrganizationResponse,
    OrganizationUpdateRequest,
)
from supplai.services.organization_service import OrganizationService
from supplai.services.session_service import SessionService

router = APIRouter()


def get_org_service(client: AsyncClient = Depends(get_supabase)) -> OrganizationService:
    """Dependency that constructs OrganizationService."""
    return OrganizationService(client=client)


def get_admin_org_service(
    admin_client: AsyncClient = Depends(get_admin_supabase),
) -> OrganizationService:
    """OrganizationService for invitation lookups by anonymous visitors."""
    return OrganizationService(client=admin_client)


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create organization",
)
async def create_organization(
    data: OrganizationCreateRequest,
    current_user: UserSession = Depends(get_current_user),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationResponse:
    """
    Create a new organization. The current user becomes its admin.

    Slug must be unique; it is generated from the name when omitted.
    """
    return await service.create_organization(data)


@router.get("", response_model=list[OrganizationContext], summary="List my organizations")
async def list_my_organizations(
    current_user: UserSession = Depends(get_current_user),
    session: SessionService = Depends(get_session_service),
) -> list[OrganizationContext]:
    return await session.get_user_organizations()


# ---------------------------------------------------------------------------
# Invitations by token
# ---------------------------------------------------------------------------

@router.get(
    "/invitations/{token}",
    response_model=InvitationInfoResponse,
    summary="Get invitation details",
)
async def get_invitation(
    token: str,
    service: OrganizationService = Depends(get_admin_org_service),
) -> InvitationInfoResponse:
    """Public: the visitor may not have an account yet."""
    invitation = await service.get_invitation_by_token(token)
    if invitation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "INVITATION_NOT_FOUND", "message": "Invitation not found"},
        )
    return invitation


@router.post(
    "/invitations/{token}/accept",
    response_model=AcceptInvitationResponse,
    summary="Accept invitation",
)
async def accept_invitation(
    token: str,
    current_user: UserSession = Depends(get_current_user),
    service: OrganizationService = Depends(get_org_service),
) -> AcceptInvitationResponse:
    return await service.accept_invitation(token)


@router.post(
    "/invitations/{token}/reject",
    response_model=MessageResponse,
    summary="Reject invitation",
)
async def reject_invitation(
    token: str,
    service: OrganizationService = Depends(get_admin_org_service),
) -> MessageResponse:
    await service.reject_invitation(token)
    return MessageResponse(message="Invitation rejected")


# ---------------------------------------------------------------------------
# Organization by slug
# ---------------------------------------------------------------------------

@router.get("/{slug}", response_model=OrganizationContext, summary="Get organization")
async def get_organization(
    org: OrganizationContext = Depends(get_org_member),
) -> OrganizationContext:
    return org


@router.patch("/{slug}", response_model=OrganizationResponse, summary="Update organization")
async def update_organization(
    data: OrganizationUpdateRequest,
    org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
    service: OrganizationService = Depends(get_org_service),
) -> OrganizationResponse:
    return await service.update_organization(org, data)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/{slug}/members", response_model=MembersListResponse, summary="List members")
async def list_members(
    org: OrganizationContext = Depends(get_org_member),
    service: OrganizationService = Depends(get_org_service),
) -> MembersListResponse:
    return await service.list_members(org.id)


@router.patch(
    "/{slug}/members/{user_id}",
    response_model=MessageResponse,
    summary="Change a member's role",
)
async def update_member_role(
    user_id: UUID,
    data: MemberRoleUpdateRequest,
    org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
    service: OrganizationService = Depends(get_org_service),
) -> MessageResponse:
    """The last admin cannot be demoted."""
    await service.update_member_role(org.id, user_id, data.role)
    return MessageResponse(message="Role updated")


@router.delete(
    "/{slug}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a member",
)
async def remove_member(
    user_id: UUID,
    org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
    service: OrganizationService = Depends(get_org_service),
) -> None:
    """The last admin cannot be removed."""
    await service.remove_member(org.id, user_id)


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

@router.post(
    "/{slug}/invite",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Invite a member",
)
async def invite_member(
    data: InviteRequest,
    org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
    current_user: UserSession = Depends(get_current_user),
    service: OrganizationService = Depends(get_org_service),
) -> InvitationResponse:
    return await service.invite_member(org, data, current_user)


@router.get(
    "/{slug}/invitations",
    response_model=InvitationsListResponse,
    summary="List pending invitations",
)
async def list_invitations(
    org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
    service: OrganizationService = Depends(get_org_service),
) -> InvitationsListResponse:
    return await service.list_invitations(org.id)


@router.delete(
    "/{slug}/invitations/{invitation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel an invitation",
)
async def cancel_invitation(
    invitation_id: UUID,
    org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
    service: OrganizationService = Depends(get_org_service),
) -> None:
    await service.cancel_invitation(org.id, invitation_id)
