from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from uuid import UUID

from app.models.history import ExpenseEventType, ReportEventType


class ReportHistoryOut(BaseModel):
    id: UUID
    report_id: UUID
    event_type: ReportEventType
    event_date: datetime
    details: Optional[str]
    performed_by_id: Optional[UUID]

    class Config:
        from_attributes = True


class ExpenseHistoryOut(BaseModel):
    id: UUID
    expense_id: UUID
    report_id: Optional[UUID]
    event_type: ExpenseEventType
    event_date: datetime
    details: Optional[str]
    performed_by_id: Optional[UUID]

    class Config:
        from_attributes = True
