"""
Application exceptions and their HTTP handlers.

Page guards raise RedirectRequired the same way routers raise HTTPException;
the handler registered in main turns it into a 303 redirect.
"""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import RedirectResponse


class ConfigurationError(RuntimeError):
    """Required configuration (usually an environment variable) is missing."""


class RedirectRequired(Exception):
    """Abort the current page and send the browser somewhere else."""

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location


def redirect(location: str) -> RedirectRequired:
    """
    Build a RedirectRequired for `raise redirect("/login")`.
    """
    return RedirectRequired(location)


async def redirect_exception_handler(
    request: Request, exc: RedirectRequired
) -> RedirectResponse:
    return RedirectResponse(url=exc.location, status_code=status.HTTP_303_SEE_OTHER)
