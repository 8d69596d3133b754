"""
Pydantic models for expenses, receipts and expense list filters.

Expense lifecycle:
- status starts as "pending" and moves to "approved" or "rejected"
- rejection_reason is only set when status is "rejected"
- payment_status / paid_at only mean something once status is "approved"
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


ExpenseStatus = Literal["pending", "approved", "rejected"]
ReviewDecision = Literal["approved", "rejected"]
PaymentStatus = Literal["pending", "paid"]


class ExpenseCreate(BaseModel):
    """
    Payload inserted into the expenses table.

    user_id is always the signed-in user's id; the HTTP layer never takes
    it from the request body.
    """
    user_id: str = Field(..., description="Owner user UUID (from the session)")
    name: str = Field(..., min_length=1, max_length=200, description="Short expense title")
    description: str = Field("", description="Free-text description")
    amount: float = Field(..., ge=0, description="Amount to reimburse")
    purpose: str = Field("", description="Business purpose")
    cost_center_id: str = Field(..., description="Cost center UUID")
    category_id: str = Field(..., description="Category UUID")
    payment_date: str = Field(..., description="ISO-8601 date the expense was paid")
    status: ExpenseStatus = Field("pending", description="Initial lifecycle status")


@dataclass
class ReceiptUpload:
    """An in-memory file attached to a new expense."""
    file_name: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class ExpenseFilters(BaseModel):
    """
    Optional, independently combinable filters for listing expenses.

    Blank strings are treated as "no filter".
    """
    model_config = ConfigDict(extra="forbid")

    search: Optional[str] = Field(None, description="Case-insensitive substring over name or description")
    status: Optional[ExpenseStatus] = Field(None, description="Exact lifecycle status")
    category: Optional[str] = Field(None, description="Exact category UUID")
    cost_center: Optional[str] = Field(None, description="Exact cost center UUID")
    date_from: Optional[datetime] = Field(None, description="Inclusive lower bound on submitted_date")
    date_to: Optional[datetime] = Field(None, description="Inclusive upper bound on submitted_date")

    @field_validator("search", "status", "category", "cost_center", "date_from", "date_to", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        return value


# --- Response models ---

class OwnerSummary(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class NameRef(BaseModel):
    name: Optional[str] = None


class ReceiptResponse(BaseModel):
    """A receipt metadata row."""
    id: Optional[str] = None
    expense_id: str
    file_name: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    storage_path: str
    created_at: Optional[str] = None


class ExpenseResponse(BaseModel):
    """
    An expense row, optionally with the joined owner, category, cost center
    and receipts (as returned by the list/detail queries).
    """
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    amount: float
    purpose: Optional[str] = None
    cost_center_id: Optional[str] = None
    category_id: Optional[str] = None
    payment_date: Optional[str] = None
    status: ExpenseStatus
    payment_status: Optional[PaymentStatus] = None
    paid_at: Optional[str] = None
    rejection_reason: Optional[str] = None
    submitted_date: Optional[str] = None
    updated_at: Optional[str] = None
    users: Optional[OwnerSummary] = None
    cost_centers: Optional[NameRef] = None
    categories: Optional[NameRef] = None
    receipts: List[ReceiptResponse] = Field(default_factory=list)


class ExpenseListResponse(BaseModel):
    expenses: List[ExpenseResponse]
    count: int


class ExpenseCreateResponse(BaseModel):
    status: Literal["CREATED"] = "CREATED"
    expense: ExpenseResponse
    receipts_uploaded: int = Field(0, description="Number of receipt files stored")


class ExpenseStatusUpdateRequest(BaseModel):
    status: ReviewDecision = Field(..., description="Review decision")
    rejection_reason: Optional[str] = Field(
        None,
        max_length=1000,
        description="Reason shown to the submitter (kept only when rejecting)",
    )


class PaymentStatusUpdateRequest(BaseModel):
    is_paid: bool = Field(..., description="True marks the expense as paid")


class ExpenseUpdateResponse(BaseModel):
    status: Literal["UPDATED"] = "UPDATED"
    expenses: List[ExpenseResponse]


class ExpenseDeleteResponse(BaseModel):
    status: Literal["DELETED"] = "DELETED"
    message: str


class ReceiptUrlResponse(BaseModel):
    url: str = Field(..., description="Time-limited signed URL")
    expires_in: int = Field(..., description="Validity in seconds")
