"""
Receipt API endpoints.

- GET /receipts/url?path=... - Signed URL (5 minutes) for a private receipt file
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from supabase import AsyncClient

from reembolso.auth.dependencies import AuthenticatedUser, get_authenticated_user, get_request_client
from reembolso.config import settings
from reembolso.errors import BackendError
from reembolso.schemas.expenses import ReceiptUrlResponse
from reembolso.services.storage import get_receipt_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/receipts", tags=["receipts"])


@router.get(
    "/url",
    response_model=ReceiptUrlResponse,
    status_code=status.HTTP_200_OK,
    summary="Get a signed URL for a receipt file",
)
async def receipt_url(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    client: Annotated[AsyncClient, Depends(get_request_client)],
    path: str = Query(..., description="receipts.storage_path value"),
) -> ReceiptUrlResponse:
    """Return a time-limited signed URL for `path`."""
    try:
        url = await get_receipt_url(client, path)
    except BackendError as e:
        logger.warning(f"Could not sign receipt path={path}: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST if e.code == "invalid_path" else status.HTTP_502_BAD_GATEWAY,
            detail={"error": "receipt_url_error", "details": e.message}
        )

    return ReceiptUrlResponse(url=url, expires_in=settings.RECEIPT_URL_TTL_SECONDS)
