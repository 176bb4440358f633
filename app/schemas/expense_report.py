# app/schemas/expense_report.py

from pydantic import BaseModel, Field, computed_field, model_validator
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from app.models.expense_report import ReportStatus
from app.schemas.expense import ExpenseResponse
from app.utils.calculations import compute_report_amounts
from app.utils.formatting import StatusDisplay, status_display


class ExpenseReportCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class ExpenseReportUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class ReportFilter(BaseModel):
    status: Optional[ReportStatus] = None
    search: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class ReportExpensesRequest(BaseModel):
    expense_ids: List[UUID] = Field(min_length=1)


class RejectReportRequest(BaseModel):
    reason: Optional[str] = None


class RecordReimbursementRequest(BaseModel):
    reimbursement_method: str = Field(min_length=1)
    reimbursement_ref: Optional[str] = None
    reimbursement_notes: Optional[str] = None


class BulkReportRequest(BaseModel):
    report_ids: List[UUID] = Field(min_length=1)


class BulkRejectRequest(BulkReportRequest):
    reason: Optional[str] = None


class BulkReimburseRequest(BulkReportRequest, RecordReimbursementRequest):
    pass


class BulkSkip(BaseModel):
    id: UUID
    reason: str
    detail: Optional[str] = None


class BulkActionResult(BaseModel):
    succeeded: List[UUID] = []
    skipped: List[BulkSkip] = []

    @computed_field
    @property
    def count(self) -> int:
        return len(self.succeeded)


class UserSummary(BaseModel):
    id: UUID
    name: str
    email: str

    class Config:
        from_attributes = True


class ExpenseReportOut(BaseModel):
    id: UUID
    user_id: UUID
    user: Optional[UserSummary] = None
    title: str
    description: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    status: ReportStatus
    total_amount: float

    submitted_at: Optional[datetime]
    approved_at: Optional[datetime]
    rejected_at: Optional[datetime]
    reimbursed_at: Optional[datetime]
    rejection_reason: Optional[str]

    reimbursement_method: Optional[str]
    reimbursement_ref: Optional[str]
    reimbursement_notes: Optional[str]

    approved_by_id: Optional[UUID]
    approved_by: Optional[UserSummary] = None

    created_at: datetime
    updated_at: Optional[datetime]
    expenses: List[ExpenseResponse] = []

    @computed_field
    @property
    def non_reimbursable_amount(self) -> float:
        return float(compute_report_amounts(self.expenses).non_reimbursable_amount)

    @computed_field
    @property
    def amount_to_be_reimbursed(self) -> float:
        return float(compute_report_amounts(self.expenses).amount_to_be_reimbursed)

    @computed_field
    @property
    def status_display(self) -> StatusDisplay:
        return status_display(self.status)

    class Config:
        from_attributes = True


class ExpenseReportListResponse(BaseModel):
    items: List[ExpenseReportOut]
    total: int
    page: int
    page_size: int
    total_pages: int
