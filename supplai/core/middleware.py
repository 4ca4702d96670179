"""
Request-level route guard.

Runs before routing: unauthenticated visitors of protected pages go to
/login, signed-in users visiting /login, /register or /forgot-password go
to /dashboard. Only the access token is checked here; pages still resolve
the user and organization themselves.

An expired access token is renewed with the refresh token cookie before the
route runs, and the new session is written back to the browser. When the
refresh token is rejected both session cookies are dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from fastapi import Request, Response, status
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from supabase import AuthError

from supplai.core.config import settings
from supplai.core.dependencies import login_redirect_url
from supplai.core.security import (
    clear_session_cookies,
    is_auth_route,
    is_public_route,
    read_claims,
    set_session_cookies,
)
from supplai.core.supabase import create_server_client

logger = logging.getLogger(__name__)


async def refresh_session(refresh_token: str) -> Any | None:
    """Exchange a refresh token for a new Supabase session, or None."""
    client = await create_server_client()
    try:
        result = await client.auth.refresh_session(refresh_token)
    except AuthError as exc:
        logger.info("Session refresh rejected: %s", exc.message)
        return None
    return result.session


def _use_access_token(request: Request, access_token: str) -> None:
    headers = [(k, v) for k, v in request.scope["headers"] if k != b"authorization"]
    headers.append((b"authorization", f"Bearer {access_token}".encode()))
    request.scope["headers"] = headers


def _sets_session_cookie(response: Response) -> bool:
    return any(
        header.startswith(f"{settings.ACCESS_TOKEN_COOKIE}=")
        for header in response.headers.getlist("set-cookie")
    )


class SessionGuardMiddleware(BaseHTTPMiddleware):
    """Redirects based on whether the request carries a valid session."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        authenticated = read_claims(request) is not None

        session = None
        refresh_token = request.cookies.get(settings.REFRESH_TOKEN_COOKIE)
        if not authenticated and refresh_token:
            session = await refresh_session(refresh_token)
            if session is not None:
                _use_access_token(request, session.access_token)
                authenticated = True

        if not authenticated and not is_public_route(path):
            logger.debug("No session for %s, redirecting to login", path)
            response: Response = RedirectResponse(
                url=login_redirect_url(path),
                status_code=status.HTTP_303_SEE_OTHER,
            )
        elif authenticated and is_auth_route(path):
            response = RedirectResponse(url="/dashboard", status_code=status.HTTP_303_SEE_OTHER)
        else:
            response = await call_next(request)

        if session is not None:
            # Routes like logout manage the cookies themselves
            if not _sets_session_cookie(response):
                set_session_cookies(
                    response, session.access_token, session.refresh_token, session.expires_in
                )
        elif refresh_token and not authenticated:
            clear_session_cookies(response)
        return response
