import enum
import uuid
from datetime import datetime
from sqlalchemy import (
    Boolean,
    Column,
    String,
    Date,
    DateTime,
    Enum,
    Numeric,
    ForeignKey,
    Text,
    JSON,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db.base_class import Base


class ExpenseStatus(str, enum.Enum):
    UNREPORTED = "UNREPORTED"
    REPORTED = "REPORTED"


class ExpenseCategory(str, enum.Enum):
    TRAVEL = "TRAVEL"
    MEALS = "MEALS"
    ACCOMMODATION = "ACCOMMODATION"
    TRANSPORTATION = "TRANSPORTATION"
    OFFICE_SUPPLIES = "OFFICE_SUPPLIES"
    ENTERTAINMENT = "ENTERTAINMENT"
    SOFTWARE = "SOFTWARE"
    TRAINING = "TRAINING"
    OTHER = "OTHER"


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # REPORTED if and only if this is set
    report_id = Column(
        Uuid,
        ForeignKey("expense_reports.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False)
    merchant = Column(String, nullable=False)
    category = Column(Enum(ExpenseCategory, name="expense_category"), nullable=False)
    description = Column(String, nullable=False)
    notes = Column(Text, nullable=True)

    claim_reimbursement = Column(Boolean, default=True, nullable=False)
    receipt_urls = Column(JSON, default=list, nullable=False)

    status = Column(
        Enum(ExpenseStatus, name="expense_status"),
        default=ExpenseStatus.UNREPORTED,
        nullable=False,
    )

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="expenses")
    report = relationship("ExpenseReport", back_populates="expenses")

    @property
    def report_name(self):
        return self.report.title if self.report is not None else None
