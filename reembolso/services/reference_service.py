"""
Reference data service: categories and cost centers.

Both tables are read-only from this layer. Listing never fails: errors are
logged and an empty list is returned so forms can still render.
"""

import logging
from typing import Any, Dict, List, cast

from supabase import AsyncClient

from reembolso.db.client import execute

logger = logging.getLogger(__name__)


async def _fetch_ordered_by_name(
    supabase_client: AsyncClient,
    table: str,
) -> List[Dict[str, Any]]:
    try:
        result = await execute(
            supabase_client.table(table).select("*").order("name"),
            f"fetch {table}",
        )
    except Exception as e:
        logger.error(f"Failed to fetch {table}, returning empty list: {e}")
        return []

    rows = cast(List[Dict[str, Any]], result.data or [])
    logger.debug(f"Fetched {len(rows)} rows from {table}")
    return rows


async def fetch_categories(supabase_client: AsyncClient) -> List[Dict[str, Any]]:
    """All expense categories, ordered by name. Empty list on failure."""
    return await _fetch_ordered_by_name(supabase_client, "categories")


async def fetch_cost_centers(supabase_client: AsyncClient) -> List[Dict[str, Any]]:
    """All cost centers, ordered by name. Empty list on failure."""
    return await _fetch_ordered_by_name(supabase_client, "cost_centers")
