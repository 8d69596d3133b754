"""
Supabase client factory and query execution helper.

Two kinds of asynchronous client, both with the public anon key:
- create_backend_client(): one per process (see main.py lifespan); it owns
  the app session driven by AuthContext (sign-in, sign-up, sign-out)
- create_user_client(): one per HTTP request, carrying the caller's bearer
  token so every query runs under Row Level Security for that caller

RULES:
1. NEVER use the service_role key here
2. NEVER log the anon key, only whether it is present
3. All PostgREST and transport failures leave this module as BackendError
"""

import logging
from typing import Any, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from reembolso.config import Settings, settings as default_settings
from reembolso.errors import BackendError

logger = logging.getLogger(__name__)


async def create_backend_client(settings: Optional[Settings] = None) -> AsyncClient:
    """
    Create the process-wide Supabase client.

    Args:
        settings: Settings to read SUPABASE_URL / SUPABASE_ANON_KEY from.
                  Defaults to the module-level settings.

    Returns:
        An asynchronous Supabase client with session persistence and
        automatic token refresh enabled.

    Raises:
        ConfigurationError: If the URL or the anon key is missing.
    """
    settings = settings or default_settings

    logger.info(
        f"Configuring Supabase client: url={settings.SUPABASE_URL}, "
        f"key_present={bool(settings.SUPABASE_ANON_KEY)}"
    )

    # Fails fast before any network activity
    settings.validate()

    options = AsyncClientOptions(
        auto_refresh_token=True,
        persist_session=True,
        headers={"x-client-info": settings.CLIENT_INFO},
    )

    client: AsyncClient = await acreate_client(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_ANON_KEY,
        options=options,
    )

    logger.debug("Supabase client created")

    return client


async def create_user_client(access_token: str, settings: Optional[Settings] = None) -> AsyncClient:
    """
    Create a Supabase client scoped to one caller's access token.

    Every table and storage request made through it carries
    `Authorization: Bearer <access_token>`, so Row Level Security applies to
    that caller. Created per request; it never stores or refreshes a session.

    Raises:
        ConfigurationError: If the URL or the anon key is missing.
    """
    settings = settings or default_settings
    settings.validate()

    options = AsyncClientOptions(
        auto_refresh_token=False,
        persist_session=False,
        headers={
            "x-client-info": settings.CLIENT_INFO,
            "Authorization": f"Bearer {access_token}",
        },
    )

    client: AsyncClient = await acreate_client(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_ANON_KEY,
        options=options,
    )

    logger.debug("Created request-scoped Supabase client (RLS enforced)")

    return client


async def execute(query: Any, action: str) -> Any:
    """
    Await a PostgREST query builder and normalize its failure.

    Args:
        query: A request builder (e.g. client.table("expenses").select("*"))
        action: Short description used in the error log (e.g. "fetch expenses")

    Returns:
        The APIResponse (use `.data`).

    Raises:
        BackendError: With the PostgREST code (e.g. "PGRST116") on failure,
                      or without a code when the request never completed.
    """
    try:
        return await query.execute()
    except APIError as e:
        logger.error(f"Failed to {action}: code={e.code}, message={e.message}")
        raise BackendError(
            message=e.message or f"Failed to {action}",
            code=e.code,
            details=e.details,
        ) from e
    except httpx.HTTPError as e:
        # Connection refused, timeouts, broken responses
        logger.error(f"Failed to {action}: {e!r}")
        raise BackendError.from_exception(e) from e
