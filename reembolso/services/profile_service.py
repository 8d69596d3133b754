"""
User profile service.

Handles reading and writing rows of the `users` table. Profiles are 1:1
with auth.users (same id) and carry the display name, email and roles.

These functions propagate BackendError; the auth context decides which
failures degrade to the default role.
"""

import logging
from typing import Any, Dict, List, Optional, cast

from supabase import AsyncClient

from reembolso.db.client import execute
from reembolso.schemas.profile import Role, coerce_roles

logger = logging.getLogger(__name__)


async def get_profile_row(
    supabase_client: AsyncClient,
    user_id: str,
) -> Dict[str, Any]:
    """
    Fetch the profile row for a user.

    Raises:
        BackendError: code "PGRST116" when the row does not exist
    """
    logger.debug(f"Fetching profile for user {user_id}")

    result = await execute(
        supabase_client.table("users").select("*").eq("id", user_id).single(),
        "fetch profile",
    )

    return cast(Dict[str, Any], result.data)


async def create_profile(
    supabase_client: AsyncClient,
    user_id: str,
    name: Optional[str],
    email: Optional[str],
    roles: List[Role],
) -> None:
    """
    Insert a profile row.

    The database unique constraint on id is the only guard against two
    concurrent inserts for the same user.

    Raises:
        BackendError: If the insert fails (including a duplicate id)
    """
    profile_data = {
        "id": user_id,
        "name": name,
        "email": email,
        "roles": [role.value for role in roles],
    }

    logger.info(f"Creating profile for user {user_id}: roles={profile_data['roles']}")

    await execute(
        supabase_client.table("users").insert(profile_data),
        "create profile",
    )


async def set_profile_roles(
    supabase_client: AsyncClient,
    user_id: str,
    roles: List[Role],
) -> None:
    """Overwrite the roles collection of an existing profile."""
    logger.info(f"Setting roles for user {user_id}: {[role.value for role in roles]}")

    await execute(
        supabase_client.table("users")
        .update({"roles": [role.value for role in roles]})
        .eq("id", user_id),
        "update profile roles",
    )


async def backfill_legacy_roles(supabase_client: AsyncClient) -> int:
    """
    One-time migration: copy the legacy singular `role` into `roles`.

    Only rows whose `roles` is NULL are touched. Returns the number of rows
    updated. Requires a client allowed to update every profile.
    """
    result = await execute(
        supabase_client.table("users").select("id, role, roles").is_("roles", "null"),
        "fetch legacy profiles",
    )

    rows = cast(List[Dict[str, Any]], result.data or [])
    logger.info(f"Found {len(rows)} profiles without a roles collection")

    updated = 0
    for row in rows:
        roles = coerce_roles(None, row.get("role"))
        await set_profile_roles(supabase_client, str(row["id"]), roles)
        updated += 1

    logger.info(f"Backfilled roles for {updated} profiles")
    return updated
