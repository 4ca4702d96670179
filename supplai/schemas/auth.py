"""
Authentication schemas.

Request/response models for sign in, sign up, password reset and email
verification, plus the session of the signed-in user.
"""

from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class UserSession(BaseModel):
    """The authenticated user as seen by pages and actions."""

    id: UUID
    email: str
    full_name: str | None = None


class SessionResponse(BaseModel):
    """Tokens of a Supabase session, also stored as cookies."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = Field(description="Access token TTL in seconds")


# ---------------------------------------------------------------------------
# Sign in / sign up
# ---------------------------------------------------------------------------

class SignInRequest(BaseModel):
    """Request body for POST /auth/login."""

    email: EmailStr
    password: str = Field(min_length=1)


class SignUpRequest(BaseModel):
    """Request body for POST /auth/register."""

    full_name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    invitation_token: str | None = None


class SignUpResponse(BaseModel):
    """
    Result of sign up.

    `session` is None while the email address is still unconfirmed.
    """

    session: SessionResponse | None = None
    email_confirmation_required: bool
    invitation_accepted: bool | None = None


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

class ForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/forgot-password."""

    email: EmailStr


class UpdatePasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    new_password: str = Field(min_length=6, max_length=128)


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------

EmailOtpType = Literal["signup", "invite", "magiclink", "recovery", "email_change", "email"]


class VerifyEmailRequest(BaseModel):
    """Request body for POST /auth/verify-email."""

    token_hash: str = Field(min_length=1)
    type: EmailOtpType = "email"


class ResendVerificationRequest(BaseModel):
    """Request body for POST /auth/resend-verification."""

    email: EmailStr


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------

class UpdateProfileRequest(BaseModel):
    """Request body for PATCH /auth/profile."""

    full_name: str = Field(min_length=2, max_length=100)


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    message: str
