"""
Auth API endpoints.

Endpoints:
- GET /auth/session - Current session, profile and roles
- POST /auth/sign-in - Email/password sign-in
- POST /auth/sign-up - Create an account and its profile
- POST /auth/sign-out - Sign out and clear local identity
- POST /auth/visibility - Client view became visible again (clears loading)

Sign-in and sign-up do not change the session snapshot directly; the
backend pushes an auth event that the AuthContext applies. The data
endpoints do not use this session: they authenticate each request with the
access_token returned by sign-in.
"""

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from reembolso.auth.context import AuthContext
from reembolso.auth.dependencies import get_auth_context
from reembolso.schemas.auth import (
    AuthActionResponse,
    AuthSnapshot,
    SignInRequest,
    SignUpRequest,
    VisibilityRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _action_response(action: str, data: Optional[Any]) -> AuthActionResponse:
    user = getattr(data, "user", None)
    session = getattr(data, "session", None)
    return AuthActionResponse(
        status=action,
        user_id=getattr(user, "id", None),
        email=getattr(user, "email", None),
        session_active=session is not None,
        access_token=getattr(session, "access_token", None),
    )


@router.get(
    "/session",
    response_model=AuthSnapshot,
    status_code=status.HTTP_200_OK,
    summary="Get the current auth state",
)
async def get_session_state(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthSnapshot:
    return auth.snapshot()


@router.post(
    "/sign-in",
    response_model=AuthActionResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign in with email and password",
)
async def sign_in(
    request: SignInRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthActionResponse:
    result = await auth.sign_in(request.email, request.password)

    if result.error is not None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "invalid_credentials", "details": result.error.message}
        )

    await auth.wait_for_events()

    return _action_response("SIGNED_IN", result.data)


@router.post(
    "/sign-up",
    response_model=AuthActionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account",
    description="""
    Create the credential and make sure a profile row with the requested
    role exists. Profile setup problems are logged and do not fail the
    request.
    """
)
async def sign_up(
    request: SignUpRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthActionResponse:
    result = await auth.sign_up(request.email, request.password, request.name, request.role)

    if result.error is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "sign_up_failed", "details": result.error.message}
        )

    logger.info("Sign-up completed")
    return _action_response("SIGNED_UP", result.data)


@router.post(
    "/sign-out",
    response_model=AuthActionResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign out",
)
async def sign_out(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthActionResponse:
    await auth.sign_out()
    await auth.wait_for_events()
    return AuthActionResponse(status="SIGNED_OUT")


@router.post(
    "/visibility",
    response_model=AuthSnapshot,
    status_code=status.HTTP_200_OK,
    summary="Report client visibility",
)
async def report_visibility(
    request: VisibilityRequest,
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthSnapshot:
    auth.on_visibility_change(request.visible)
    return auth.snapshot()
