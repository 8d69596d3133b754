"""
Expense persistence service.

RULES:
1. Every query runs under the signed-in user's RLS scope (shared client)
2. Receipts are never orphaned: delete receipt rows before the expense row
3. Mutations propagate BackendError unchanged; there are no retries
4. A failed receipt upload does NOT roll back the inserted expense row
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, cast

from supabase import AsyncClient

from reembolso.db.client import execute
from reembolso.errors import BackendError
from reembolso.schemas.expenses import (
    ExpenseCreate,
    ExpenseFilters,
    ReceiptUpload,
)
from reembolso.services.storage import build_receipt_path, upload_receipt

logger = logging.getLogger(__name__)

# Expense row plus owner, cost center, category and all receipts
EXPENSE_SELECT = """
  *,
  users:user_id (name, email),
  cost_centers:cost_center_id (name),
  categories:category_id (name),
  receipts (*)
"""

REVIEW_DECISIONS = ("approved", "rejected")


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def fetch_expenses(
    supabase_client: AsyncClient,
    filters: Optional[ExpenseFilters] = None,
) -> List[Dict[str, Any]]:
    """
    List expenses matching the given filters, newest submission first.

    Args:
        supabase_client: Supabase client
        filters: Optional search/status/category/cost center/date range

    Returns:
        Expense rows with users, cost_centers, categories and receipts joined.
        An empty list when nothing matches.

    Raises:
        BackendError: If the query fails
    """
    filters = filters or ExpenseFilters()

    query = supabase_client.table("expenses").select(EXPENSE_SELECT)

    if filters.search:
        term = filters.search.strip()
        query = query.or_(f"name.ilike.%{term}%,description.ilike.%{term}%")

    if filters.status:
        query = query.eq("status", filters.status)

    if filters.category:
        query = query.eq("category_id", filters.category)

    if filters.cost_center:
        query = query.eq("cost_center_id", filters.cost_center)

    if filters.date_from:
        query = query.gte("submitted_date", filters.date_from.isoformat())

    if filters.date_to:
        query = query.lte("submitted_date", filters.date_to.isoformat())

    query = query.order("submitted_date", desc=True)

    logger.debug(f"Fetching expenses with filters={filters.model_dump(exclude_none=True)}")

    result = await execute(query, "fetch expenses")

    expenses = cast(List[Dict[str, Any]], result.data or [])
    logger.info(f"Fetched {len(expenses)} expenses")

    return expenses


async def fetch_expense_by_id(
    supabase_client: AsyncClient,
    expense_id: str,
) -> Dict[str, Any]:
    """
    Fetch one expense with the same joins as fetch_expenses().

    Raises:
        BackendError: code "PGRST116" if no row matches, or any query failure
    """
    logger.debug(f"Fetching expense {expense_id}")

    result = await execute(
        supabase_client.table("expenses")
        .select(EXPENSE_SELECT)
        .eq("id", expense_id)
        .single(),
        "fetch expense",
    )

    return cast(Dict[str, Any], result.data)


async def create_expense(
    supabase_client: AsyncClient,
    expense: ExpenseCreate,
    files: Sequence[ReceiptUpload] = (),
) -> Dict[str, Any]:
    """
    Create an expense and store its receipt files.

    This function:
    1. Inserts the expense row
    2. Uploads every file concurrently to {expense_id}/{timestamp}_{index}.{ext}
    3. Inserts one receipts row per uploaded file in a single batch

    Args:
        supabase_client: Supabase client
        expense: Expense payload (user_id from the session)
        files: Receipt files to attach (may be empty)

    Returns:
        The inserted expense row.

    Raises:
        BackendError: If the insert, any upload or the receipts insert fails.
                      On upload failure the expense row stays in place and
                      no receipt rows are written.
    """
    logger.info(
        f"Creating expense for user {expense.user_id}: "
        f"name={expense.name}, files={len(files)}"
    )

    result = await execute(
        supabase_client.table("expenses").insert(expense.model_dump()),
        "create expense",
    )

    if not result.data:
        raise BackendError(message="Failed to create expense: no data returned")

    created_expense = cast(Dict[str, Any], result.data[0])
    expense_id = str(created_expense["id"])

    if files:
        timestamp_ms = int(time.time() * 1000)
        paths = [
            build_receipt_path(expense_id, timestamp_ms, index, upload.file_name)
            for index, upload in enumerate(files)
        ]

        try:
            await asyncio.gather(
                *(
                    upload_receipt(supabase_client, path, upload)
                    for path, upload in zip(paths, files)
                )
            )
        except Exception:
            logger.warning(
                f"Receipt upload failed for expense {expense_id}; "
                "expense row kept without receipts"
            )
            raise

        receipts = [
            {
                "expense_id": expense_id,
                "file_name": upload.file_name,
                "file_type": upload.content_type,
                "file_size": upload.size,
                "storage_path": path,
            }
            for path, upload in zip(paths, files)
        ]

        await execute(
            supabase_client.table("receipts").insert(receipts),
            "create receipts",
        )

        logger.info(f"Stored {len(receipts)} receipts for expense {expense_id}")

    logger.info(f"Expense created successfully: id={expense_id}")

    return created_expense


async def update_expense_status(
    supabase_client: AsyncClient,
    expense_id: str,
    status: str,
    rejection_reason: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Approve or reject an expense.

    rejection_reason is only written when rejecting and a reason is given.

    Raises:
        ValueError: If status is not "approved" or "rejected"
        BackendError: If the update fails
    """
    if status not in REVIEW_DECISIONS:
        raise ValueError(f"Invalid status: {status}. Must be 'approved' or 'rejected'")

    update_data: Dict[str, Any] = {"status": status, "updated_at": _utc_now()}

    if status == "rejected" and rejection_reason:
        update_data["rejection_reason"] = rejection_reason

    logger.info(f"Updating expense {expense_id} status to {status}")

    result = await execute(
        supabase_client.table("expenses").update(update_data).eq("id", expense_id),
        "update expense status",
    )

    return cast(List[Dict[str, Any]], result.data or [])


async def update_payment_status(
    supabase_client: AsyncClient,
    expense_id: str,
    is_paid: bool,
) -> List[Dict[str, Any]]:
    """
    Mark an expense as paid (stamping paid_at) or back to pending (clearing it).

    Raises:
        BackendError: If the update fails
    """
    now = _utc_now()
    update_data = {
        "payment_status": "paid" if is_paid else "pending",
        "paid_at": now if is_paid else None,
        "updated_at": now,
    }

    logger.info(f"Updating expense {expense_id} payment_status to {update_data['payment_status']}")

    result = await execute(
        supabase_client.table("expenses").update(update_data).eq("id", expense_id),
        "update payment status",
    )

    return cast(List[Dict[str, Any]], result.data or [])


async def delete_expense(
    supabase_client: AsyncClient,
    expense_id: str,
) -> bool:
    """
    Delete an expense and its receipt rows.

    Receipts go first; if that fails the expense row is left untouched.
    Stored receipt files are not removed.

    Raises:
        BackendError: If either delete fails
    """
    logger.info(f"Deleting receipts for expense {expense_id}")

    await execute(
        supabase_client.table("receipts").delete().eq("expense_id", expense_id),
        "delete receipts",
    )

    await execute(
        supabase_client.table("expenses").delete().eq("id", expense_id),
        "delete expense",
    )

    logger.info(f"Expense {expense_id} deleted")

    return True
