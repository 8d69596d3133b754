"""
Supabase Storage service for expense receipt files.

Receipts live in a private bucket (default "receipts") under
{expense_id}/{timestamp}_{index}.{extension}. They are only readable
through time-limited signed URLs.
"""

import logging
import mimetypes
from typing import Optional

from supabase import AsyncClient

from reembolso.config import settings
from reembolso.errors import BackendError
from reembolso.schemas.expenses import ReceiptUpload

logger = logging.getLogger(__name__)


def build_receipt_path(expense_id: str, timestamp_ms: int, index: int, file_name: str) -> str:
    """
    Build the storage key for the index-th file of one submission.

    The timestamp plus the positional index keep keys unique even when the
    same file name is attached twice.
    """
    extension = file_name.rsplit(".", 1)[-1]
    return f"{expense_id}/{timestamp_ms}_{index}.{extension}"


async def upload_receipt(
    supabase_client: AsyncClient,
    storage_path: str,
    upload: ReceiptUpload,
) -> str:
    """
    Upload one receipt file to the receipts bucket.

    Args:
        supabase_client: Supabase client (carries the user's session)
        storage_path: Key built by build_receipt_path()
        upload: File name, MIME type and bytes

    Returns:
        The storage path, for the receipts.storage_path column.

    Raises:
        BackendError: If the upload fails
    """
    content_type: Optional[str] = upload.content_type
    if not content_type:
        content_type, _ = mimetypes.guess_type(upload.file_name)
        if not content_type:
            content_type = "application/octet-stream"

    logger.info(
        f"Uploading receipt: file_name={upload.file_name}, size={upload.size} bytes, "
        f"content_type={content_type}, storage_path={storage_path}"
    )

    try:
        await supabase_client.storage.from_(settings.RECEIPTS_BUCKET).upload(
            path=storage_path,
            file=upload.content,
            file_options={"content-type": content_type},
        )
    except Exception as e:
        logger.error(f"Failed to upload receipt to storage_path={storage_path}: {e}")
        raise BackendError.from_exception(e) from e

    logger.info(f"Uploaded receipt to storage: storage_path={storage_path}")

    return storage_path


async def get_receipt_url(
    supabase_client: AsyncClient,
    storage_path: str,
    expires_in: Optional[int] = None,
) -> str:
    """
    Generate a signed URL for a private receipt file.

    Args:
        supabase_client: Supabase client (carries the user's session)
        storage_path: Path stored in receipts.storage_path
        expires_in: Validity in seconds (default RECEIPT_URL_TTL_SECONDS, 300)

    Returns:
        A signed URL granting temporary read access.

    Raises:
        BackendError: If the path is blank or storage refuses the request
    """
    if not storage_path or not storage_path.strip():
        raise BackendError(message="Receipt storage path is empty", code="invalid_path")

    if expires_in is None:
        expires_in = settings.RECEIPT_URL_TTL_SECONDS

    try:
        response = await supabase_client.storage.from_(
            settings.RECEIPTS_BUCKET
        ).create_signed_url(storage_path, expires_in)
    except Exception as e:
        logger.error(f"Failed to generate signed URL for storage_path={storage_path}: {e}")
        raise BackendError.from_exception(e) from e

    # Handle both dict-like and object responses
    url: Optional[str]
    if isinstance(response, dict):
        url = response.get("signedURL") or response.get("signedUrl") or response.get("signed_url")
    else:
        url = getattr(response, "signedURL", None) or getattr(response, "signed_url", None)

    if not url:
        logger.error(f"Signed URL response had no URL for storage_path={storage_path}")
        raise BackendError(message="Storage returned no signed URL", code="no_signed_url")

    logger.debug(f"Generated signed URL for storage_path={storage_path}")
    return str(url)
