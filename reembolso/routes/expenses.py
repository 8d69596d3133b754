"""
Expense API endpoints.

Endpoints:
- GET /expenses - List expenses (filters as query parameters)
- GET /expenses/{expense_id} - Get one expense with receipts
- POST /expenses - Submit an expense with receipt files (role: submitter)
- PATCH /expenses/{expense_id}/status - Approve (approver) or reject (rejector)
- PATCH /expenses/{expense_id}/payment - Mark paid / unpaid (role: admin)
- DELETE /expenses/{expense_id} - Delete expense and receipts (role: deleter)

Every endpoint requires "Authorization: Bearer <access_token>"; queries run
as that caller (RLS). Admins pass every role check.
"""

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import ValidationError
from supabase import AsyncClient

from reembolso.auth.dependencies import (
    AuthenticatedUser,
    get_authenticated_user,
    get_request_client,
    require_role,
)
from reembolso.errors import BackendError
from reembolso.schemas.expenses import (
    ExpenseCreate,
    ExpenseCreateResponse,
    ExpenseDeleteResponse,
    ExpenseFilters,
    ExpenseListResponse,
    ExpenseResponse,
    ExpenseStatusUpdateRequest,
    ExpenseUpdateResponse,
    PaymentStatusUpdateRequest,
    ReceiptUpload,
)
from reembolso.schemas.profile import Role
from reembolso.services.expense_service import (
    create_expense,
    delete_expense,
    fetch_expense_by_id,
    fetch_expenses,
    update_expense_status,
    update_payment_status,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/expenses", tags=["expenses"])

MAX_RECEIPT_SIZE_MB = 10


def _backend_error(e: BackendError, action: str) -> HTTPException:
    """Map a BackendError to an HTTP error (404 for a missing row, else 502)."""
    if e.is_not_found:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "not_found", "details": "Expense not found"}
        )
    logger.error(f"Backend error while trying to {action}: {e!r}")
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"error": "backend_error", "details": e.message, "code": e.code}
    )


@router.get(
    "",
    response_model=ExpenseListResponse,
    status_code=status.HTTP_200_OK,
    summary="List expenses",
    description="""
    List expenses visible to the signed-in user, newest submission first.

    Query parameters (all optional, combinable):
    - search: substring of name or description (case-insensitive)
    - status: pending | approved | rejected
    - category / cost_center: exact UUID
    - date_from / date_to: inclusive bounds on submitted_date (ISO-8601)
    """
)
async def list_expenses(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    client: Annotated[AsyncClient, Depends(get_request_client)],
    search: Optional[str] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    category: Optional[str] = Query(None),
    cost_center: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
) -> ExpenseListResponse:
    """List expenses matching the filters."""
    try:
        filters = ExpenseFilters(
            search=search,
            status=status_filter,
            category=category,
            cost_center=cost_center,
            date_from=date_from,
            date_to=date_to,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_filters", "details": e.errors(include_url=False)}
        )

    try:
        expenses = await fetch_expenses(client, filters)
    except BackendError as e:
        raise _backend_error(e, "list expenses")

    items = [ExpenseResponse.model_validate(row) for row in expenses]
    return ExpenseListResponse(expenses=items, count=len(items))


@router.get(
    "/{expense_id}",
    response_model=ExpenseResponse,
    status_code=status.HTTP_200_OK,
    summary="Get expense details",
)
async def get_expense(
    expense_id: str,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    client: Annotated[AsyncClient, Depends(get_request_client)],
) -> ExpenseResponse:
    """Get one expense with owner, category, cost center and receipts."""
    try:
        row = await fetch_expense_by_id(client, expense_id)
    except BackendError as e:
        raise _backend_error(e, "fetch expense")

    return ExpenseResponse.model_validate(row)


@router.post(
    "",
    response_model=ExpenseCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit an expense",
    description="""
    Create an expense owned by the signed-in user and store its receipts.

    Multipart form: expense fields plus zero or more `files`.
    The owner is always the authenticated caller.

    If a receipt upload fails the expense row is kept without receipts and
    the request fails with 502.
    """
)
async def submit_expense(
    auth_user: Annotated[AuthenticatedUser, Depends(require_role(Role.SUBMITTER))],
    client: Annotated[AsyncClient, Depends(get_request_client)],
    name: Annotated[str, Form()],
    amount: Annotated[float, Form()],
    cost_center_id: Annotated[str, Form()],
    category_id: Annotated[str, Form()],
    payment_date: Annotated[str, Form()],
    description: Annotated[str, Form()] = "",
    purpose: Annotated[str, Form()] = "",
    files: Annotated[Optional[List[UploadFile]], File(description="Receipt files")] = None,
) -> ExpenseCreateResponse:
    """Submit a new expense."""
    try:
        expense = ExpenseCreate(
            user_id=auth_user.user_id,
            name=name,
            description=description,
            amount=amount,
            purpose=purpose,
            cost_center_id=cost_center_id,
            category_id=category_id,
            payment_date=payment_date,
        )
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_expense", "details": e.errors(include_url=False)}
        )

    uploads: List[ReceiptUpload] = []
    for upload in files or []:
        content = await upload.read()
        if len(content) > MAX_RECEIPT_SIZE_MB * 1024 * 1024:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={
                    "error": "file_too_large",
                    "details": f"Receipts must be smaller than {MAX_RECEIPT_SIZE_MB}MB"
                }
            )
        uploads.append(
            ReceiptUpload(
                file_name=upload.filename or "receipt",
                content_type=upload.content_type or "",
                content=content,
            )
        )

    logger.info(f"Submitting expense for user {auth_user.user_id} with {len(uploads)} receipts")

    try:
        created = await create_expense(client, expense, uploads)
    except BackendError as e:
        raise _backend_error(e, "create expense")

    return ExpenseCreateResponse(
        expense=ExpenseResponse.model_validate(created),
        receipts_uploaded=len(uploads),
    )


@router.patch(
    "/{expense_id}/status",
    response_model=ExpenseUpdateResponse,
    status_code=status.HTTP_200_OK,
    summary="Approve or reject an expense",
)
async def review_expense(
    expense_id: str,
    request: ExpenseStatusUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    client: Annotated[AsyncClient, Depends(get_request_client)],
) -> ExpenseUpdateResponse:
    """Approving needs the approver role, rejecting the rejector role."""
    required = Role.APPROVER if request.status == "approved" else Role.REJECTOR
    if not auth_user.has_role(required):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "forbidden", "details": f"Role '{required.value}' required"}
        )

    try:
        rows = await update_expense_status(
            client, expense_id, request.status, request.rejection_reason
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "invalid_status", "details": str(e)}
        )
    except BackendError as e:
        raise _backend_error(e, "update expense status")

    return ExpenseUpdateResponse(expenses=[ExpenseResponse.model_validate(r) for r in rows])


@router.patch(
    "/{expense_id}/payment",
    response_model=ExpenseUpdateResponse,
    status_code=status.HTTP_200_OK,
    summary="Mark an expense as paid or unpaid",
)
async def set_payment_status(
    expense_id: str,
    request: PaymentStatusUpdateRequest,
    auth_user: Annotated[AuthenticatedUser, Depends(require_role(Role.ADMIN))],
    client: Annotated[AsyncClient, Depends(get_request_client)],
) -> ExpenseUpdateResponse:
    """Set payment_status and paid_at."""
    try:
        rows = await update_payment_status(client, expense_id, request.is_paid)
    except BackendError as e:
        raise _backend_error(e, "update payment status")

    return ExpenseUpdateResponse(expenses=[ExpenseResponse.model_validate(r) for r in rows])


@router.delete(
    "/{expense_id}",
    response_model=ExpenseDeleteResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete an expense and its receipts",
)
async def remove_expense(
    expense_id: str,
    auth_user: Annotated[AuthenticatedUser, Depends(require_role(Role.DELETER))],
    client: Annotated[AsyncClient, Depends(get_request_client)],
) -> ExpenseDeleteResponse:
    """Receipts are deleted first; the expense is kept if that fails."""
    try:
        await delete_expense(client, expense_id)
    except BackendError as e:
        raise _backend_error(e, "delete expense")

    return ExpenseDeleteResponse(message="Expense deleted successfully")
