"""
Public pages: home, auth forms, auth callbacks and invitation links.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse

from supplai.core.security import clear_session_cookies, read_claims, set_session_cookies
from supplai.routers.auth import get_auth_service
from supplai.routers.organizations import get_admin_org_service
from supplai.schemas.auth import EmailOtpType, SessionResponse
from supplai.schemas.page import AuthPageResponse, HomePageResponse, InvitePageResponse, NavItem
from supplai.services.auth_service import AuthService
from supplai.services.organization_service import OrganizationService

logger = logging.getLogger(__name__)

router = APIRouter()

AUTH_CODE_ERROR_PATH = "/auth/auth-code-error"


def _safe_next(next_path: str | None) -> str:
    """Only same-site paths are allowed as redirect targets."""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return "/dashboard"
    return next_path


def _session_redirect(location: str, session: SessionResponse | None) -> RedirectResponse:
    response = RedirectResponse(url=location, status_code=status.HTTP_303_SEE_OTHER)
    if session is not None:
        set_session_cookies(
            response, session.access_token, session.refresh_token, session.expires_in
        )
    return response


# ---------------------------------------------------------------------------
# Home
# ---------------------------------------------------------------------------

@router.get("/", response_model=HomePageResponse, summary="Home page")
async def home_page(request: Request) -> HomePageResponse:
    authenticated = read_claims(request) is not None
    if authenticated:
        links = [NavItem(label="Go to dashboard", href="/dashboard")]
    else:
        links = [
            NavItem(label="Sign in", href="/login"),
            NavItem(label="Create account", href="/register"),
        ]
    return HomePageResponse(
        title="Supplai",
        description="Voice ordering for your suppliers",
        authenticated=authenticated,
        links=links,
    )


# ---------------------------------------------------------------------------
# Auth forms
# ---------------------------------------------------------------------------

@router.get("/login", response_model=AuthPageResponse, summary="Sign in page")
async def login_page(
    redirect_to: str | None = Query(default=None, alias="redirectTo"),
    error: str | None = None,
) -> AuthPageResponse:
    return AuthPageResponse(
        title="Sign in",
        form="login",
        redirect_to=_safe_next(redirect_to) if redirect_to else None,
        error=error,
    )


@router.get("/register", response_model=AuthPageResponse, summary="Sign up page")
async def register_page(
    email: str | None = None,
    invitation: str | None = None,
) -> AuthPageResponse:
    """Invitation links prefill the email and carry the invitation token."""
    return AuthPageResponse(
        title="Create account",
        form="register",
        email=email,
        invitation_token=invitation,
    )


@router.get("/forgot-password", response_model=AuthPageResponse, summary="Forgot password page")
async def forgot_password_page() -> AuthPageResponse:
    return AuthPageResponse(title="Reset your password", form="forgot_password")


@router.get("/reset-password", response_model=AuthPageResponse, summary="New password page")
async def reset_password_page() -> AuthPageResponse:
    return AuthPageResponse(title="Choose a new password", form="reset_password")


@router.get("/verify-email", response_model=AuthPageResponse, summary="Check your inbox page")
async def verify_email_page(email: str | None = None) -> AuthPageResponse:
    return AuthPageResponse(
        title="Check your email",
        description="We sent you a confirmation link. Check your spam folder if it is not there.",
        form="verify_email",
        email=email,
    )


@router.post("/logout", summary="Sign out and go to the sign in page")
async def logout_page(service: AuthService = Depends(get_auth_service)) -> RedirectResponse:
    await service.sign_out()
    response = RedirectResponse(url="/login", status_code=status.HTTP_303_SEE_OTHER)
    clear_session_cookies(response)
    return response


# ---------------------------------------------------------------------------
# Auth callbacks
# ---------------------------------------------------------------------------

@router.get("/auth/callback", summary="Email link / OAuth callback")
async def auth_callback(
    code: str | None = None,
    token_hash: str | None = None,
    otp_type: EmailOtpType | None = Query(default=None, alias="type"),
    next_path: str | None = Query(default=None, alias="next"),
    service: AuthService = Depends(get_auth_service),
) -> RedirectResponse:
    """
    Exchange `code` for a session and go to `next` (default /dashboard),
    or verify `token_hash` + `type` and go to /auth/confirm.

    Anything else ends on /auth/auth-code-error.
    """
    logger.info(
        "Auth callback triggered (type=%s, token_hash=%s, code=%s)",
        otp_type, bool(token_hash), bool(code),
    )

    if code:
        try:
            session = await service.exchange_code(code)
        except HTTPException as exc:
            logger.error("Auth code exchange error: %s", exc.detail)
        else:
            return _session_redirect(_safe_next(next_path), session)

    if token_hash and otp_type:
        try:
            session = await service.verify_email(token_hash, otp_type)
        except HTTPException as exc:
            logger.error("Auth verify OTP error: %s", exc.detail)
        else:
            return _session_redirect("/auth/confirm", session)

    return RedirectResponse(url=AUTH_CODE_ERROR_PATH, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/auth/confirm", response_model=AuthPageResponse, summary="Email confirmed page")
async def confirm_page(request: Request) -> AuthPageResponse:
    signed_in = read_claims(request) is not None
    return AuthPageResponse(
        title="Email confirmed",
        form="confirm",
        redirect_to="/dashboard" if signed_in else "/login",
    )


@router.get("/auth/auth-code-error", response_model=AuthPageResponse, summary="Auth link error page")
async def auth_code_error_page() -> AuthPageResponse:
    return AuthPageResponse(
        title="The link is invalid or has expired",
        form="login",
        error="The link is invalid or has expired. Request a new one.",
    )


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

@router.get("/invite/{token}", response_model=InvitePageResponse, summary="Invitation page")
async def invite_page(
    token: str,
    request: Request,
    service: OrganizationService = Depends(get_admin_org_service),
) -> InvitePageResponse:
    """
    Anonymous visitors are sent to sign up with the invitation attached;
    signed-in users accept or reject it right away.
    """
    invitation = await service.get_invitation_by_token(token)
    if invitation is None:
        return InvitePageResponse(title="Invitation not found", state="not_found")
    if not invitation.is_valid:
        return InvitePageResponse(
            title="Invitation expired", state="expired", invitation=invitation
        )

    title = f"Join {invitation.organization_name}"
    api_base = f"/api/v1/organizations/invitations/{token}"
    if read_claims(request) is None:
        query = {"invitation": token}
        if invitation.email:
            query["email"] = invitation.email
        return InvitePageResponse(
            title=title,
            state="anonymous",
            invitation=invitation,
            accept_href=f"/register?{urlencode(query)}",
            reject_href=f"/invite/{token}/reject",
        )

    return InvitePageResponse(
        title=title,
        state="signed_in",
        invitation=invitation,
        accept_href=f"{api_base}/accept",
        reject_href=f"/invite/{token}/reject",
    )


@router.post("/invite/{token}/reject", response_model=InvitePageResponse, summary="Reject invitation")
async def reject_invite_page(
    token: str,
    service: OrganizationService = Depends(get_admin_org_service),
) -> InvitePageResponse:
    await service.reject_invitation(token)
    return InvitePageResponse(title="Invitation rejected", state="rejected")
