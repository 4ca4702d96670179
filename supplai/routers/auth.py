"""
Authentication endpoints.

Sign in, sign up, sign out, password reset, email verification, profile, me.
Successful sign in stores the Supabase session in cookies.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from supabase import AsyncClient

from supplai.core.dependencies import get_admin_supabase, get_current_user, get_supabase
from supplai.core.security import clear_session_cookies, set_session_cookies
from supplai.schemas.auth import (
    ForgotPasswordRequest,
    MessageResponse,
    ResendVerificationRequest,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    UpdatePasswordRequest,
    UpdateProfileRequest,
    UserSession,
    VerifyEmailRequest,
)
from supplai.services.auth_service import AuthService

router = APIRouter()


def get_auth_service(client: AsyncClient = Depends(get_supabase)) -> AuthService:
    """Dependency that constructs AuthService."""
    return AuthService(client=client)


def _store_session(response: Response, session: SessionResponse) -> None:
    set_session_cookies(
        response, session.access_token, session.refresh_token, session.expires_in
    )


# ---------------------------------------------------------------------------
# Sign in / sign up / sign out
# ---------------------------------------------------------------------------

@router.post("/login", response_model=SessionResponse, summary="Sign in with email and password")
async def login(
    data: SignInRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> SessionResponse:
    session = await service.sign_in(data)
    _store_session(response, session)
    return session


@router.post(
    "/register",
    response_model=SignUpResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
)
async def register(
    data: SignUpRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> SignUpResponse:
    """
    Create an account.

    - Without email confirmation the session is returned and stored
    - With `invitation_token` the invitation is accepted when possible
    """
    result = await service.sign_up(data)
    if result.session is not None:
        _store_session(response, result.session)
    return result


@router.post("/logout", response_model=MessageResponse, summary="Sign out")
async def logout(
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await service.sign_out()
    clear_session_cookies(response)
    return MessageResponse(message="Signed out")


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

@router.post("/forgot-password", response_model=MessageResponse, summary="Request password reset")
async def forgot_password(
    data: ForgotPasswordRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await service.request_password_reset(data.email)
    return MessageResponse(message="If that email exists, a reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse, summary="Set a new password")
async def reset_password(
    data: UpdatePasswordRequest,
    current_user: UserSession = Depends(get_current_user),
    admin_client: AsyncClient = Depends(get_admin_supabase),
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await service.update_password(current_user, data.new_password, admin_client)
    return MessageResponse(message="Password updated")


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------

@router.post(
    "/verify-email",
    response_model=SessionResponse | MessageResponse,
    summary="Verify an email OTP",
)
async def verify_email(
    data: VerifyEmailRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> SessionResponse | MessageResponse:
    session = await service.verify_email(data.token_hash, data.type)
    if session is None:
        return MessageResponse(message="Email verified")
    _store_session(response, session)
    return session


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    summary="Resend the confirmation email",
)
async def resend_verification(
    data: ResendVerificationRequest,
    service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await service.resend_verification(data.email)
    return MessageResponse(message="Verification email sent")


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

@router.get("/me", response_model=UserSession, summary="Current user")
async def me(current_user: UserSession = Depends(get_current_user)) -> UserSession:
    return current_user


@router.patch("/profile", response_model=UserSession, summary="Update profile")
async def update_profile(
    data: UpdateProfileRequest,
    current_user: UserSession = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
) -> UserSession:
    return await service.update_profile(current_user, data.full_name)
