"""Append-only audit trail for reports and expenses.

Rows are added to the caller's session and committed together with the
state change they describe. Nothing here updates or deletes a history row.
"""

from sqlalchemy.orm import Session

from app.models.history import (
    ExpenseEventType,
    ExpenseHistory,
    ReportEventType,
    ReportHistory,
)


def record_report_event(
    db: Session,
    report_id,
    event_type: ReportEventType,
    details: str = None,
    performed_by_id=None,
) -> ReportHistory:
    entry = ReportHistory(
        report_id=report_id,
        event_type=event_type,
        details=details,
        performed_by_id=performed_by_id,
    )
    db.add(entry)
    return entry


def record_expense_event(
    db: Session,
    expense_id,
    event_type: ExpenseEventType,
    details: str = None,
    performed_by_id=None,
    report_id=None,
) -> ExpenseHistory:
    entry = ExpenseHistory(
        expense_id=expense_id,
        event_type=event_type,
        details=details,
        report_id=report_id,
        performed_by_id=performed_by_id,
    )
    db.add(entry)
    return entry


def list_report_history(db: Session, report_id):
    return (
        db.query(ReportHistory)
        .filter(ReportHistory.report_id == report_id)
        .order_by(ReportHistory.event_date.desc())
        .all()
    )


def list_expense_history(db: Session, expense_id):
    return (
        db.query(ExpenseHistory)
        .filter(ExpenseHistory.expense_id == expense_id)
        .order_by(ExpenseHistory.event_date.desc())
        .all()
    )
