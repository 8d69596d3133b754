"""
FastAPI dependency functions for authentication and role checks.

Data routes authenticate every request on its own:
1. Read the Authorization header (format: "Bearer <token>")
2. Build a Supabase client carrying that token (RLS applies to the caller)
3. Verify the token with Supabase Auth and read the caller's profile/roles

The AuthContext on app.state only tracks the app's own session for the
/auth endpoints; it is never used to authorize a data request.

Usage:
    @router.delete("/{expense_id}")
    async def remove(
        auth_user: Annotated[AuthenticatedUser, Depends(require_role(Role.DELETER))],
        client: Annotated[AsyncClient, Depends(get_request_client)],
    ):
        ...
"""

import logging
from dataclasses import dataclass, field
from typing import Annotated, Callable, Optional, Tuple

from fastapi import Depends, Header, HTTPException, Request, status
from supabase import AsyncClient

from reembolso.auth.context import AuthContext
from reembolso.db.client import create_user_client
from reembolso.errors import BackendError
from reembolso.schemas.profile import DEFAULT_ROLES, Profile, Role, role_satisfied
from reembolso.services.profile_service import get_profile_row

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    """
    The caller of one request.

    Attributes:
        user_id: Auth identity UUID (verified by Supabase Auth)
        access_token: The caller's bearer token
        email: Auth identity email, if any
        profile: Profile row, None when missing or unreadable
        roles: Effective roles (["user"] without a profile)
    """
    user_id: str
    access_token: str
    email: Optional[str] = None
    profile: Optional[Profile] = None
    roles: Tuple[Role, ...] = field(default_factory=lambda: tuple(DEFAULT_ROLES))

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    def has_role(self, role: Role) -> bool:
        return role_satisfied(self.roles, role)


def get_auth_context(request: Request) -> AuthContext:
    """Return the application's AuthContext."""
    return request.app.state.auth_context


def get_access_token(authorization: Annotated[Optional[str], Header()] = None) -> str:
    """
    Extract the bearer token from the Authorization header.

    Raises:
        HTTPException: 401 if the header is missing or malformed
    """
    if not authorization:
        logger.warning("Missing Authorization header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "details": "Missing Authorization header"}
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        logger.warning("Invalid Authorization header format")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "details": "Invalid Authorization header format"}
        )

    return parts[1]


async def get_request_client(
    access_token: Annotated[str, Depends(get_access_token)],
) -> AsyncClient:
    """Supabase client for this request, running queries as the caller."""
    return await create_user_client(access_token)


async def get_authenticated_user(
    access_token: Annotated[str, Depends(get_access_token)],
    client: Annotated[AsyncClient, Depends(get_request_client)],
) -> AuthenticatedUser:
    """
    Verify the bearer token and load the caller's profile and roles.

    A missing or unreadable profile is not an error: the caller gets the
    default ["user"] role, which passes no role check.

    Raises:
        HTTPException: 401 if the token is rejected by Supabase Auth
    """
    try:
        response = await client.auth.get_user(access_token)
    except Exception as e:
        logger.warning(f"Token rejected by Supabase Auth: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_token", "details": "Invalid authentication token"}
        )

    user = getattr(response, "user", None) if response else None
    if user is None:
        logger.warning("Token did not resolve to a user")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_token", "details": "Invalid authentication token"}
        )

    profile: Optional[Profile] = None
    try:
        profile = Profile.model_validate(await get_profile_row(client, user.id))
    except BackendError as e:
        logger.warning(f"No usable profile for user {user.id}: {e.message}")

    roles = tuple(profile.roles) if profile is not None else tuple(DEFAULT_ROLES)
    logger.info(f"Request authenticated for user_id={user.id}")

    return AuthenticatedUser(
        user_id=str(user.id),
        access_token=access_token,
        email=getattr(user, "email", None),
        profile=profile,
        roles=roles,
    )


def require_role(role: Role) -> Callable[..., object]:
    """
    Build a dependency that requires `role` (admin always passes).

    Raises:
        HTTPException: 401 without a valid token, 403 without the role
    """
    async def dependency(
        auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    ) -> AuthenticatedUser:
        if not auth_user.has_role(role):
            logger.warning(f"Rejected request for user {auth_user.user_id}: missing role {role.value}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"error": "forbidden", "details": f"Role '{role.value}' required"}
            )
        return auth_user

    return dependency
