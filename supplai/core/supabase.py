"""
Supabase client factories.

The request client uses the anon key and forwards the caller's access token,
so every query runs under row level security as that user. The admin client
uses the service role key and bypasses row level security: only use it on
the server for work that has no signed-in user (cron, workers, invitation
lookups for anonymous visitors).
"""

from __future__ import annotations

import logging

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from supplai.core.config import Settings, settings
from supplai.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


async def create_server_client(
    access_token: str | None = None,
    config: Settings = settings,
) -> AsyncClient:
    """
    Create a Supabase client acting as the given user (or anonymously).

    Args:
        access_token: The user's Supabase access token, if signed in.
        config: Settings to read the project URL and anon key from.

    Raises:
        ConfigurationError: If the project URL or anon key is missing.
    """
    if not config.SUPABASE_URL or not config.SUPABASE_ANON_KEY:
        raise ConfigurationError(
            "Supabase configuration missing: SUPABASE_URL or SUPABASE_ANON_KEY"
        )

    headers: dict[str, str] = {}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"

    return await acreate_client(
        config.SUPABASE_URL,
        config.SUPABASE_ANON_KEY,
        options=AsyncClientOptions(
            headers=headers,
            auto_refresh_token=False,
            persist_session=False,
        ),
    )


async def create_admin_client(config: Settings = settings) -> AsyncClient:
    """
    Create a Supabase client with the service role key.

    Raises:
        ConfigurationError: If SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is missing.
    """
    if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE_KEY:
        raise ConfigurationError(
            "Supabase configuration missing: SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY"
        )

    logger.debug("Creating Supabase admin client")
    return await acreate_client(
        config.SUPABASE_URL,
        config.SUPABASE_SERVICE_ROLE_KEY,
        options=AsyncClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        ),
    )
