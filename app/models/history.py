import enum
import uuid
from datetime import datetime
from sqlalchemy import Column, DateTime, Enum, ForeignKey, Text, Uuid

from app.db.base_class import Base


class ReportEventType(str, enum.Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REIMBURSED = "REIMBURSED"
    DELETED = "DELETED"


class ExpenseEventType(str, enum.Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    ADDED_TO_REPORT = "ADDED_TO_REPORT"
    REMOVED_FROM_REPORT = "REMOVED_FROM_REPORT"
    DELETED = "DELETED"


# Audit rows keep the entity id without a foreign key so the trail
# outlives the report or expense it describes.


class ReportHistory(Base):
    __tablename__ = "report_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    report_id = Column(Uuid, nullable=False, index=True)
    event_type = Column(Enum(ReportEventType, name="report_event_type"), nullable=False)
    event_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    details = Column(Text, nullable=True)

    performed_by_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )


class ExpenseHistory(Base):
    __tablename__ = "expense_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    expense_id = Column(Uuid, nullable=False, index=True)
    report_id = Column(Uuid, nullable=True)
    event_type = Column(Enum(ExpenseEventType, name="expense_event_type"), nullable=False)
    event_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    details = Column(Text, nullable=True)

    performed_by_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
