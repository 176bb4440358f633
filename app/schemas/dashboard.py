from pydantic import BaseModel
from datetime import datetime
from typing import Dict, List, Optional


class ApprovalQueue(BaseModel):
    awaiting_approval: int
    awaiting_reimbursement: int
    stale_submissions: int


class AdminMetrics(BaseModel):
    pending_reimbursement_amount: float
    ytd_approved_count: int
    ytd_rejected_count: int
    avg_processing_days: float
    queue: ApprovalQueue
    reimbursed_by_timeframe: Dict[str, float]


class TimeframeTotal(BaseModel):
    timeframe: str
    start: datetime
    end: datetime
    total_amount: float


class CategoryAmount(BaseModel):
    category: str
    total_amount: float
    expense_count: int


class CategoryBreakdown(BaseModel):
    timeframe: str
    start: datetime
    end: datetime
    total_amount: float
    categories: List[CategoryAmount]


class StatusSummary(BaseModel):
    count: int
    total_amount: float


class UserReportsSummary(BaseModel):
    by_status: Dict[str, StatusSummary]
    unreported_expense_count: int
    unreported_expense_amount: float
    last_submitted_at: Optional[datetime] = None
