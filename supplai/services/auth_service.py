"""
Authentication business logic.

Sign in, sign up, sign out, password reset, email verification and profile
updates. Supabase Auth owns users and sessions; this service calls it and
translates its error messages. Routers only handle HTTP concerns (cookies).
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status
from supabase import AsyncClient, AuthError, PostgrestAPIError

from supplai.core.config import settings
from supplai.schemas.auth import (
    EmailOtpType,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    UserSession,
)

logger = logging.getLogger(__name__)

# Supabase Auth message -> (code, user-facing message)
AUTH_ERROR_MESSAGES: dict[str, tuple[str, str]] = {
    "Invalid login credentials": (
        "INVALID_CREDENTIALS",
        "Incorrect email or password",
    ),
    "Email not confirmed": (
        "EMAIL_NOT_CONFIRMED",
        "Please confirm your email before signing in",
    ),
    "User already registered": (
        "EMAIL_TAKEN",
        "An account with this email already exists",
    ),
    "Password should be at least 6 characters": (
        "WEAK_PASSWORD",
        "Password must be at least 6 characters",
    ),
    "Unable to validate email address: invalid format": (
        "INVALID_EMAIL",
        "The email format is not valid",
    ),
    "Email rate limit exceeded": (
        "RATE_LIMITED",
        "Too many attempts. Please wait a few minutes",
    ),
    "For security purposes, you can only request this once every 60 seconds": (
        "RATE_LIMITED",
        "For security reasons you can only request this once every 60 seconds",
    ),
}

GENERIC_AUTH_ERROR = ("AUTH_ERROR", "Something went wrong. Please try again.")


def translate_auth_error(message: str) -> tuple[str, str]:
    """Map a Supabase Auth error message to (code, user-facing message)."""
    return AUTH_ERROR_MESSAGES.get(message, GENERIC_AUTH_ERROR)


def auth_http_error(exc: AuthError) -> HTTPException:
    code, message = translate_auth_error(exc.message)
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": code, "message": message},
    )


def session_response(session: Any) -> SessionResponse:
    return SessionResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=session.expires_in,
    )


class AuthService:
    """Handles all authentication operations."""

    def __init__(self, client: AsyncClient) -> None:
        self.client = client

    # -----------------------------------------------------------------------
    # Sign in / sign up / sign out
    # -----------------------------------------------------------------------

    async def sign_in(self, data: SignInRequest) -> SessionResponse:
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": data.email, "password": data.password}
            )
        except AuthError as exc:
            raise auth_http_error(exc)

        return session_response(response.session)

    async def sign_up(self, data: SignUpRequest) -> SignUpResponse:
        """
        Create an account with `full_name` metadata.

        If an invitation token is given, try to accept it. A failure there
        is logged and does not fail the sign up; the user can accept the
        invitation later from its link.
        """
        try:
            response = await self.client.auth.sign_up(
                {
                    "email": data.email,
                    "password": data.password,
                    "options": {
                        "data": {"full_name": data.full_name},
                        "email_redirect_to": f"{settings.SITE_URL}/auth/callback",
                    },
                }
            )
        except AuthError as exc:
            logger.error("Sign up failed for %s: %s", data.email, exc.message)
            raise auth_http_error(exc)

        invitation_accepted: bool | None = None
        if data.invitation_token:
            invitation_accepted = await self._accept_invitation_after_sign_up(
                data.invitation_token
            )

        session = response.session
        return SignUpResponse(
            session=session_response(session) if session else None,
            email_confirmation_required=session is None,
            invitation_accepted=invitation_accepted,
        )

    async def _accept_invitation_after_sign_up(self, token: str) -> bool:
        try:
            await self.client.rpc("accept_invitation", {"invitation_token": token}).execute()
        except PostgrestAPIError as exc:
            logger.error("Error accepting invitation after sign up: %s", exc.message)
            return False
        return True

    async def sign_out(self) -> None:
        """End the Supabase session. Cookies are cleared by the caller either way."""
        try:
            await self.client.auth.sign_out()
        except AuthError as exc:
            logger.warning("Sign out failed: %s", exc.message)

    # -----------------------------------------------------------------------
    # Password reset
    # -----------------------------------------------------------------------

    async def request_password_reset(self, email: str) -> None:
        try:
            await self.client.auth.reset_password_for_email(
                email, {"redirect_to": f"{settings.SITE_URL}/reset-password"}
            )
        except AuthError as exc:
            raise auth_http_error(exc)

    async def update_password(
        self, user: UserSession, new_password: str, admin_client: AsyncClient
    ) -> None:
        """
        Set a new password for the signed-in (usually recovery) session.

        Request clients carry no refreshable session, so the change goes
        through the admin API for the verified user id.
        """
        try:
            await admin_client.auth.admin.update_user_by_id(
                str(user.id), {"password": new_password}
            )
        except AuthError as exc:
            raise auth_http_error(exc)

    # -----------------------------------------------------------------------
    # Email verification
    # -----------------------------------------------------------------------

    async def verify_email(self, token_hash: str, otp_type: EmailOtpType) -> SessionResponse | None:
        try:
            response = await self.client.auth.verify_otp(
                {"token_hash": token_hash, "type": otp_type}
            )
        except AuthError as exc:
            raise auth_http_error(exc)

        return session_response(response.session) if response.session else None

    async def resend_verification(self, email: str) -> None:
        try:
            await self.client.auth.resend(
                {
                    "type": "signup",
                    "email": email,
                    "options": {"email_redirect_to": f"{settings.SITE_URL}/auth/callback"},
                }
            )
        except AuthError as exc:
            raise auth_http_error(exc)

    async def exchange_code(self, code: str) -> SessionResponse:
        """Exchange an OAuth / PKCE auth code for a session."""
        try:
            response = await self.client.auth.exchange_code_for_session({"auth_code": code})
        except AuthError as exc:
            raise auth_http_error(exc)

        return session_response(response.session)

    # -----------------------------------------------------------------------
    # Profile
    # -----------------------------------------------------------------------

    async def update_profile(self, user: UserSession, full_name: str) -> UserSession:
        try:
            await (
                self.client.table("profiles")
                .update({"full_name": full_name})
                .eq("id", str(user.id))
                .execute()
            )
        except PostgrestAPIError as exc:
            logger.error("Profile update failed for %s: %s", user.id, exc.message)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"code": "PROFILE_UPDATE_FAILED", "message": "Could not update the profile"},
            )

        return user.model_copy(update={"full_name": full_name})
