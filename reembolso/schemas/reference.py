"""
Pydantic models for read-only reference data (categories and cost centers).
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class CategoryResponse(BaseModel):
    id: str = Field(..., description="Category UUID")
    name: str = Field(..., description="Category display name")
    created_at: Optional[str] = None


class CategoryListResponse(BaseModel):
    categories: List[CategoryResponse]
    count: int


class CostCenterResponse(BaseModel):
    id: str = Field(..., description="Cost center UUID")
    name: str = Field(..., description="Cost center display name")
    created_at: Optional[str] = None


class CostCenterListResponse(BaseModel):
    cost_centers: List[CostCenterResponse]
    count: int
