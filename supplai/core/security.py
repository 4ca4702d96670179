"""
Security utilities.

Access token validation, session cookies, public/auth route tables.
Tokens are issued by Supabase Auth; we only verify them.
"""

from __future__ import annotations

from typing import Any

from fastapi import Response
from jose import JWTError, jwt
from starlette.requests import HTTPConnection

from supplai.core.config import settings


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

# Routes that don't require authentication
PUBLIC_ROUTES: tuple[str, ...] = (
    "/",
    "/login",
    "/register",
    "/forgot-password",
    "/reset-password",
    "/verify-email",
    "/invite",
    "/auth/confirm",
    "/auth/callback",
    "/auth/auth-code-error",
    "/api/cron",
    "/api",
    "/health",
    "/manifest.webmanifest",
)

# Routes that authenticated users should not access
AUTH_ROUTES: tuple[str, ...] = ("/login", "/register", "/forgot-password")


def _matches(pathname: str, routes: tuple[str, ...]) -> bool:
    return any(
        pathname == route or pathname.startswith(f"{route.rstrip('/')}/")
        for route in routes
    )


def is_public_route(pathname: str) -> bool:
    """True when `pathname` is one of the public routes or below one."""
    # "/" only matches itself, otherwise every path would be public
    if pathname == "/":
        return True
    return _matches(pathname, tuple(r for r in PUBLIC_ROUTES if r != "/"))


def is_auth_route(pathname: str) -> bool:
    return _matches(pathname, AUTH_ROUTES)


# ---------------------------------------------------------------------------
# Access tokens
# ---------------------------------------------------------------------------

def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a Supabase access token.

    Returns:
        Decoded payload dict.

    Raises:
        JWTError: If the token is invalid, expired, for another audience,
            or carries no subject.
    """
    payload = jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        audience=settings.JWT_AUDIENCE,
    )
    if not payload.get("sub"):
        raise JWTError("Token has no subject")
    return payload


def extract_access_token(conn: HTTPConnection) -> str | None:
    """
    Read the access token from the Authorization header or the session cookie.

    Browsers cannot set headers on a websocket handshake, so websocket
    connections may also pass it as the `token` query parameter.
    """
    auth_header = conn.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.removeprefix("Bearer ").strip() or None
    token = conn.cookies.get(settings.ACCESS_TOKEN_COOKIE)
    if not token and conn.scope["type"] == "websocket":
        token = conn.query_params.get("token")
    return token or None


def read_claims(conn: HTTPConnection) -> dict[str, Any] | None:
    """Return the verified token claims of the request, or None."""
    token = extract_access_token(conn)
    if token is None:
        return None
    try:
        return decode_access_token(token)
    except JWTError:
        return None


# ---------------------------------------------------------------------------
# Session cookies
# ---------------------------------------------------------------------------

def set_session_cookies(
    response: Response,
    access_token: str,
    refresh_token: str,
    expires_in: int,
) -> None:
    """Store the Supabase session on the browser."""
    response.set_cookie(
        settings.ACCESS_TOKEN_COOKIE,
        access_token,
        max_age=expires_in,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
    response.set_cookie(
        settings.REFRESH_TOKEN_COOKIE,
        refresh_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookies(response: Response) -> None:
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE)
    response.delete_cookie(settings.REFRESH_TOKEN_COOKIE)
