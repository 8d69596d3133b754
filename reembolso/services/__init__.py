"""
Service layer for Reembolso.

Stateless coroutines that take the Supabase client first and perform the
reads/writes for expenses, receipts, reference data and profiles.
"""

from .expense_service import (
    create_expense,
    delete_expense,
    fetch_expense_by_id,
    fetch_expenses,
    update_expense_status,
    update_payment_status,
)
from .profile_service import (
    backfill_legacy_roles,
    create_profile,
    get_profile_row,
    set_profile_roles,
)
from .reference_service import fetch_categories, fetch_cost_centers
from .storage import build_receipt_path, get_receipt_url, upload_receipt

__all__ = [
    "fetch_expenses",
    "fetch_expense_by_id",
    "create_expense",
    "update_expense_status",
    "update_payment_status",
    "delete_expense",
    "get_profile_row",
    "create_profile",
    "set_profile_roles",
    "backfill_legacy_roles",
    "fetch_categories",
    "fetch_cost_centers",
    "build_receipt_path",
    "get_receipt_url",
    "upload_receipt",
]
