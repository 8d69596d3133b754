"""
Error types for the Reembolso data layer.

Two kinds of failure exist:
- ConfigurationError: credentials are missing, raised at startup (fatal)
- BackendError: any failed remote call (database, storage or auth)

Callers only branch on one backend code, NOT_FOUND_CODE, which PostgREST
returns when `.single()` matches no row.
"""

from typing import Any, Optional

# PostgREST: "JSON object requested, multiple (or no) rows returned"
NOT_FOUND_CODE = "PGRST116"


class ConfigurationError(RuntimeError):
    """Raised when a required setting (URL or public key) is missing."""


class BackendError(Exception):
    """
    A failed call against the hosted backend.

    Attributes:
        code: Provider-specific error code (e.g. "PGRST116"), if any
        message: Human readable message from the provider
        details: Optional extra payload from the provider
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    @property
    def is_not_found(self) -> bool:
        return self.code == NOT_FOUND_CODE

    @classmethod
    def from_exception(cls, exc: BaseException) -> "BackendError":
        """
        Normalize a provider exception into a BackendError.

        PostgREST APIError, storage and auth errors all expose `code` and
        `message` attributes (possibly None); anything else falls back to
        str(exc).
        """
        if isinstance(exc, BackendError):
            return exc

        code = getattr(exc, "code", None)
        message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
        details = getattr(exc, "details", None)

        return cls(
            message=str(message),
            code=str(code) if code is not None else None,
            details=details,
        )

    def __repr__(self) -> str:
        return f"BackendError(code={self.code!r}, message={self.message!r})"
