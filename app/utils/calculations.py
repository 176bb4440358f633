from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from app.models.expense import Expense
from app.models.expense_report import ExpenseReport

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


@dataclass(frozen=True)
class ReportAmounts:
    total_amount: Decimal
    non_reimbursable_amount: Decimal
    amount_to_be_reimbursed: Decimal


def to_money(value) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)


def compute_report_amounts(expenses: Iterable[Expense]) -> ReportAmounts:
    total = ZERO
    non_reimbursable = ZERO
    for expense in expenses:
        amount = to_money(expense.amount)
        total += amount
        if expense.claim_reimbursement is False:
            non_reimbursable += amount

    return ReportAmounts(
        total_amount=total,
        non_reimbursable_amount=non_reimbursable,
        amount_to_be_reimbursed=total - non_reimbursable,
    )


def recalculate_report_total(db: Session, report: ExpenseReport) -> ReportAmounts:
    """Rewrite ``report.total_amount`` from the expenses attached right now.

    Flushes pending expense changes first; the caller owns the commit.
    """
    db.flush()
    expenses = db.query(Expense).filter(Expense.report_id == report.id).all()
    amounts = compute_report_amounts(expenses)
    report.total_amount = amounts.total_amount
    return amounts
