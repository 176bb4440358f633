# app/models/expense_report.py

import enum
import uuid
from datetime import datetime
from sqlalchemy import (
    Column,
    String,
    Date,
    DateTime,
    Enum,
    Numeric,
    ForeignKey,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class ReportStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REIMBURSED = "REIMBURSED"


class ExpenseReport(Base):
    __tablename__ = "expense_reports"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)

    status = Column(
        Enum(ReportStatus, name="report_status"),
        default=ReportStatus.DRAFT,
        nullable=False,
        index=True,
    )

    # Cached sum of the associated expenses, rewritten on every add/remove/submit
    total_amount = Column(Numeric(12, 2), default=0, nullable=False)

    submitted_at = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    reimbursed_at = Column(DateTime, nullable=True)

    rejection_reason = Column(Text, nullable=True)

    reimbursement_method = Column(String, nullable=True)
    reimbursement_ref = Column(String, nullable=True)
    reimbursement_notes = Column(Text, nullable=True)

    # Set by approve and reject
    approved_by_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship(
        "User",
        back_populates="expense_reports",
        foreign_keys=[user_id],
    )
    approved_by = relationship("User", foreign_keys=[approved_by_id])

    expenses = relationship(
        "Expense",
        back_populates="report",
        order_by="Expense.date",
    )
