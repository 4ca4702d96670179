"""
FastAPI dependency injection functions.

Provides Supabase clients, the current user, page guards (redirects),
organization membership and role enforcement.
"""

from __future__ import annotations

from urllib.parse import quote

from fastapi import Depends, HTTPException, status
from starlette.requests import HTTPConnection
from supabase import AsyncClient

from supplai.core.exceptions import redirect
from supplai.core.permissions import admin_only
from supplai.core.security import extract_access_token, read_claims
from supplai.core.supabase import create_admin_client, create_server_client
from supplai.models.member import MembershipRole
from supplai.schemas.auth import UserSession
from supplai.schemas.organization import OrganizationContext
from supplai.schemas.page import NavItem, OrganizationLayout
from supplai.services.session_service import SessionService

# ---------------------------------------------------------------------------
# Supabase clients
# ---------------------------------------------------------------------------

async def get_supabase(conn: HTTPConnection) -> AsyncClient:
    """
    Supabase client acting as the caller.

    Works for both HTTP requests and websocket handshakes.
    """
    return await create_server_client(extract_access_token(conn))


async def get_admin_supabase() -> AsyncClient:
    """Service role client. Raises ConfigurationError when not configured."""
    return await create_admin_client()


async def get_session_service(
    conn: HTTPConnection,
    client: AsyncClient = Depends(get_supabase),
) -> SessionService:
    return SessionService(client, read_claims(conn))


# ---------------------------------------------------------------------------
# Current user
# ---------------------------------------------------------------------------

async def get_current_user(
    service: SessionService = Depends(get_session_service),
) -> UserSession:
    """
    Return the authenticated user for API routes.

    Raises 401 if there is no valid access token.
    """
    user = await service.get_session()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHORIZED", "message": "Authentication required"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


# ---------------------------------------------------------------------------
# Page guards (redirect instead of 401)
# ---------------------------------------------------------------------------

def login_redirect_url(path: str) -> str:
    return f"/login?redirectTo={quote(path, safe='/')}"


async def require_session(
    conn: HTTPConnection,
    service: SessionService = Depends(get_session_service),
) -> UserSession:
    """
    Current user, or redirect to /login with redirectTo set to the
    requested path.
    """
    user = await service.get_session()
    if user is None:
        raise redirect(login_redirect_url(conn.url.path))
    return user


async def require_organizations(
    user: UserSession = Depends(require_session),
    service: SessionService = Depends(get_session_service),
) -> list[OrganizationContext]:
    """
    Protected layout guard: the user's organizations, or redirect to
    /onboarding when there are none.
    """
    organizations = await service.get_user_organizations()
    if not organizations:
        raise redirect("/onboarding")
    return organizations


def build_navigation(organization: OrganizationContext) -> list[NavItem]:
    base = f"/{organization.slug}"
    items = [
        NavItem(label="Home", href=base),
        NavItem(label="History", href=f"{base}/history"),
        NavItem(label="Suppliers", href=f"{base}/suppliers"),
    ]
    items += admin_only(
        organization.role,
        [NavItem(label="Members", href=f"{base}/settings/members")],
        fallback=[],
    )
    return items


def build_org_layout(
    organization: OrganizationContext,
    organizations: list[OrganizationContext],
    user: UserSession,
) -> OrganizationLayout:
    return OrganizationLayout(
        organization=organization,
        organizations=organizations,
        user=user,
        navigation=build_navigation(organization),
        new_order_href=f"/{organization.slug}/orders/new",
    )


async def get_org_layout(
    slug: str,
    user: UserSession = Depends(require_session),
    organizations: list[OrganizationContext] = Depends(require_organizations),
    service: SessionService = Depends(get_session_service),
) -> OrganizationLayout:
    """
    Organization layout guard for /{slug}/...

    Runs inside the protected layout guard (session, at least one
    organization). Fetch organization by slug -> fetch membership. A missing
    organization or membership is a 404, whichever it is.
    """
    organization = await service.get_organization_by_slug(slug)
    if organization is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "ORG_NOT_FOUND", "message": "Organization not found"},
        )

    return build_org_layout(organization, organizations, user)


# ---------------------------------------------------------------------------
# Organization membership + role enforcement (API)
# ---------------------------------------------------------------------------

async def get_org_member(
    slug: str,
    current_user: UserSession = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
) -> OrganizationContext:
    """
    Resolve org by slug and verify current user is a member.

    Raises 404 if org not found, 403 if user is not a member.
    """
    org = await service.find_organization(slug)
    if org is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "ORG_NOT_FOUND", "message": "Organization not found"},
        )

    membership = await service.find_membership(org["id"])
    if membership is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "NOT_A_MEMBER", "message": "You are not a member of this organization"},
        )

    return OrganizationContext(
        id=org["id"],
        name=org["name"],
        slug=org["slug"],
        role=membership["role"],
        is_admin=membership["role"] == MembershipRole.admin.value,
    )


def require_role(*roles: MembershipRole):
    """
    Dependency factory that enforces a role.

    Usage:
        @router.post("/...")
        async def endpoint(
            org: OrganizationContext = Depends(require_role(MembershipRole.admin)),
        ):
            ...
    """
    async def role_checker(
        org: OrganizationContext = Depends(get_org_member),
    ) -> OrganizationContext:
        if org.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "INSUFFICIENT_ROLE",
                    "message": f"Required role: {[r.value for r in roles]}",
                },
            )
        return org

    return role_checker
