"""
Pydantic schemas for Reembolso.

Closed request/response contracts for expenses, receipts, reference data,
profiles and auth.
"""

from .auth import (
    AuthActionResponse,
    AuthSnapshot,
    SignInRequest,
    SignUpRequest,
    VisibilityRequest,
)
from .expenses import (
    ExpenseCreate,
    ExpenseFilters,
    ExpenseResponse,
    ReceiptResponse,
    ReceiptUpload,
)
from .profile import Profile, Role, coerce_roles, role_satisfied
from .reference import CategoryResponse, CostCenterResponse

__all__ = [
    "AuthActionResponse",
    "AuthSnapshot",
    "SignInRequest",
    "SignUpRequest",
    "VisibilityRequest",
    "ExpenseCreate",
    "ExpenseFilters",
    "ExpenseResponse",
    "ReceiptResponse",
    "ReceiptUpload",
    "Profile",
    "Role",
    "coerce_roles",
    "role_satisfied",
    "CategoryResponse",
    "CostCenterResponse",
]
