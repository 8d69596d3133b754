"""
Reference data endpoints (read-only).

- GET /categories - All categories ordered by name
- GET /cost-centers - All cost centers ordered by name

Both return an empty list when the backend call fails.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from supabase import AsyncClient

from reembolso.auth.dependencies import AuthenticatedUser, get_authenticated_user, get_request_client
from reembolso.schemas.reference import (
    CategoryListResponse,
    CategoryResponse,
    CostCenterListResponse,
    CostCenterResponse,
)
from reembolso.services.reference_service import fetch_categories, fetch_cost_centers

router = APIRouter(tags=["reference"])


@router.get(
    "/categories",
    response_model=CategoryListResponse,
    status_code=status.HTTP_200_OK,
    summary="List expense categories",
)
async def list_categories(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    client: Annotated[AsyncClient, Depends(get_request_client)],
) -> CategoryListResponse:
    rows = await fetch_categories(client)
    categories = [CategoryResponse.model_validate(row) for row in rows]
    return CategoryListResponse(categories=categories, count=len(categories))


@router.get(
    "/cost-centers",
    response_model=CostCenterListResponse,
    status_code=status.HTTP_200_OK,
    summary="List cost centers",
)
async def list_cost_centers(
    auth_user: Annotated[AuthenticatedUser, Depends(get_authenticated_user)],
    client: Annotated[AsyncClient, Depends(get_request_client)],
) -> CostCenterListResponse:
    rows = await fetch_cost_centers(client)
    cost_centers = [CostCenterResponse.model_validate(row) for row in rows]
    return CostCenterListResponse(cost_centers=cost_centers, count=len(cost_centers))
