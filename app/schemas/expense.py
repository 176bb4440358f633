from pydantic import BaseModel, Field, computed_field, model_validator
from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Dict, Optional, List
from uuid import UUID

from app.models.expense import ExpenseCategory, ExpenseStatus
from app.utils.formatting import StatusDisplay, status_display


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    date: date_type
    merchant: str = Field(min_length=1)
    category: ExpenseCategory
    description: str = Field(min_length=3)
    notes: Optional[str] = None
    claim_reimbursement: bool = True
    receipt_urls: List[str] = []
    # Optional: attach to one of the caller's reports right away
    report_id: Optional[UUID] = None


class ExpenseUpdate(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    date: Optional[date_type] = None
    merchant: Optional[str] = Field(default=None, min_length=1)
    category: Optional[ExpenseCategory] = None
    description: Optional[str] = Field(default=None, min_length=3)
    notes: Optional[str] = None
    claim_reimbursement: Optional[bool] = None
    receipt_urls: Optional[List[str]] = None


class ExpenseFilter(BaseModel):
    start_date: Optional[date_type] = None
    end_date: Optional[date_type] = None
    category: Optional[ExpenseCategory] = None
    status: Optional[ExpenseStatus] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    search: Optional[str] = None
    report_id: Optional[UUID] = None

    @model_validator(mode="after")
    def validate_ranges(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be before end_date")
        if (
            self.min_amount is not None
            and self.max_amount is not None
            and self.min_amount > self.max_amount
        ):
            raise ValueError("min_amount must not exceed max_amount")
        return self


class ExpenseResponse(BaseModel):
    id: UUID
    user_id: UUID
    report_id: Optional[UUID]
    report_name: Optional[str] = None

    amount: float
    date: date_type
    merchant: str
    category: ExpenseCategory
    description: str
    notes: Optional[str]
    claim_reimbursement: bool
    receipt_urls: List[str] = []
    status: ExpenseStatus

    created_at: datetime
    updated_at: Optional[datetime]

    @computed_field
    @property
    def status_display(self) -> StatusDisplay:
        return status_display(self.status)

    class Config:
        from_attributes = True


class ExpenseListResponse(BaseModel):
    items: List[ExpenseResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class ExpenseBulkDeleteRequest(BaseModel):
    expense_ids: List[UUID] = Field(min_length=1)


class ExpenseStatusStats(BaseModel):
    count: int
    total_amount: float


class ExpenseStats(BaseModel):
    total_count: int
    total_amount: float
    by_status: Dict[str, ExpenseStatusStats]
