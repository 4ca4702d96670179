"""
Organization schemas.

Request/response models for organization, member and invitation endpoints.
"""

from __future__ import annotations

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from supplai.models.member import MembershipRole

_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9-]*[a-z0-9]$")


# ---------------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------------

class OrganizationContext(BaseModel):
    """An organization together with the current user's role in it."""

    id: UUID
    name: str
    slug: str
    role: MembershipRole
    is_admin: bool


class OrganizationCreateRequest(BaseModel):
    """Request body for POST /organizations."""

    name: str = Field(min_length=2, max_length=100)
    slug: str | None = Field(default=None, min_length=3, max_length=50)

    @field_validator("slug")
    @classmethod
    def slug_must_be_valid(cls, v: str | None) -> str | None:
        if v is None:
            return v
        if not _SLUG_RE.match(v):
            raise ValueError(
                "Slug must be lowercase alphanumeric and hyphens only, "
                "and cannot start or end with a hyphen"
            )
        return v


class OrganizationUpdateRequest(BaseModel):
    """Request body for PATCH /organizations/{slug}."""

    name: str = Field(min_length=2, max_length=100)


class OrganizationResponse(BaseModel):
    """Organization detail response."""

    id: UUID
    name: str
    slug: str

    model_config = {"from_attributes": True}


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

class MemberResponse(BaseModel):
    """Single org member with profile info and role."""

    id: UUID
    user_id: UUID
    email: str | None
    full_name: str | None
    role: MembershipRole
    joined_at: datetime | None = None


class MembersListResponse(BaseModel):
    """Response for GET /organizations/{slug}/members."""

    members: list[MemberResponse]
    total: int


class MemberRoleUpdateRequest(BaseModel):
    """Request body for PATCH /organizations/{slug}/members/{user_id}."""

    role: MembershipRole


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

class InviteRequest(BaseModel):
    """Request body for POST /organizations/{slug}/invite."""

    email: EmailStr
    role: MembershipRole = MembershipRole.member


class InvitationResponse(BaseModel):
    """Invitation detail response."""

    id: UUID
    organization_id: UUID
    email: str
    role: MembershipRole
    token: str
    expires_at: datetime | None = None
    accepted_at: datetime | None = None


class InvitationsListResponse(BaseModel):
    """Response for listing pending invitations."""

    invitations: list[InvitationResponse]
    total: int


class InvitationInfoResponse(BaseModel):
    """Public info about an invitation (shown before accepting)."""

    email: str | None
    organization_name: str
    invited_by_name: str | None = None
    role: MembershipRole
    is_valid: bool


class AcceptInvitationResponse(BaseModel):
    """Organization joined by accepting an invitation."""

    organization_id: UUID
    slug: str | None
