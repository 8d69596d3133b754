"""
Pydantic models for auth endpoints and the auth state snapshot.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from reembolso.schemas.profile import Profile, Role


class SignInRequest(BaseModel):
    email: str = Field(..., min_length=3, description="Account email")
    password: str = Field(..., min_length=1, description="Account password")


class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3, description="Account email")
    password: str = Field(..., min_length=6, description="Account password")
    name: str = Field(..., min_length=1, max_length=100, description="Display name")
    role: Role = Field(Role.SUBMITTER, description="Initial role for the new profile")


class AuthSnapshot(BaseModel):
    """
    Read-only view of the auth context.

    Used as the response for GET /auth/session and after auth actions.
    """
    signed_in: bool = Field(..., description="True when a session is present")
    user_id: Optional[str] = Field(None, description="Auth identity UUID")
    email: Optional[str] = Field(None, description="Auth identity email")
    profile: Optional[Profile] = Field(None, description="Resolved profile (None if missing or failed)")
    roles: List[Role] = Field(default_factory=list, description="Effective roles")
    is_admin: bool = Field(False, description="True if roles include admin")
    loading: bool = Field(..., description="True while the profile is being resolved")


class AuthActionResponse(BaseModel):
    status: str = Field(..., examples=["SIGNED_IN", "SIGNED_UP", "SIGNED_OUT"])
    user_id: Optional[str] = None
    email: Optional[str] = None
    session_active: bool = Field(False, description="True if the backend returned a session")
    access_token: Optional[str] = Field(
        None, description="Bearer token for the data endpoints (Authorization header)"
    )
    details: Optional[Any] = None


class VisibilityRequest(BaseModel):
    visible: bool = Field(..., description="True when the client view becomes visible again")
