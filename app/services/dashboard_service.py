"""Read-only dashboard projections over reports and expenses."""

import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import ALL_TIME_START_YEAR
from app.core.exceptions import ValidationError
from app.models.expense import Expense, ExpenseStatus
from app.models.expense_report import ExpenseReport, ReportStatus
from app.utils.calculations import to_money

TIMEFRAMES = ["today", "week", "month", "quarter", "year", "all_time", "custom"]


def timeframe_range(
    timeframe: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    now = now or datetime.utcnow()
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)

    if timeframe == "today":
        return midnight, now
    if timeframe == "week":
        # Weeks start on Sunday
        days_since_sunday = (now.weekday() + 1) % 7
        return midnight - timedelta(days=days_since_sunday), now
    if timeframe == "month":
        return midnight.replace(day=1), now
    if timeframe == "quarter":
        first_month = (now.month - 1) // 3 * 3 + 1
        return midnight.replace(month=first_month, day=1), now
    if timeframe == "year":
        return midnight.replace(month=1, day=1), now
    if timeframe == "all_time":
        return datetime(ALL_TIME_START_YEAR, 1, 1), now
    if timeframe == "custom":
        if not start or not end:
            raise ValidationError("Custom timeframe needs both start and end")
        if start > end:
            raise ValidationError("start must be before end")
        return start, end

    raise ValidationError(f"Unknown timeframe: {timeframe}")


def _expense_sum_for_reports(db: Session, *criteria) -> Decimal:
    total = (
        db.query(func.sum(Expense.amount))
        .join(ExpenseReport, Expense.report_id == ExpenseReport.id)
        .filter(*criteria)
        .scalar()
    )
    return to_money(total)


def pending_reimbursement_amount(db: Session) -> Decimal:
    return _expense_sum_for_reports(db, ExpenseReport.status == ReportStatus.APPROVED)


def reimbursed_total(
    db: Session,
    timeframe: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    range_start, range_end = timeframe_range(timeframe, start, end)
    total = _expense_sum_for_reports(
        db,
        ExpenseReport.status == ReportStatus.REIMBURSED,
        ExpenseReport.reimbursed_at >= range_start,
        ExpenseReport.reimbursed_at <= range_end,
    )
    return {
        "timeframe": timeframe,
        "start": range_start,
        "end": range_end,
        "total_amount": float(total),
    }


def category_breakdown(
    db: Session,
    timeframe: str = "all_time",
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    range_start, range_end = timeframe_range(timeframe, start, end)
    rows = (
        db.query(Expense.category, func.sum(Expense.amount), func.count(Expense.id))
        .join(ExpenseReport, Expense.report_id == ExpenseReport.id)
        .filter(
            ExpenseReport.status == ReportStatus.REIMBURSED,
            ExpenseReport.reimbursed_at >= range_start,
            ExpenseReport.reimbursed_at <= range_end,
        )
        .group_by(Expense.category)
        .all()
    )

    categories = sorted(
        (
            {
                "category": getattr(category, "value", category),
                "total_amount": float(to_money(amount)),
                "expense_count": count,
            }
            for category, amount, count in rows
        ),
        key=lambda c: c["total_amount"],
        reverse=True,
    )
    return {
        "timeframe": timeframe,
        "start": range_start,
        "end": range_end,
        "total_amount": float(sum((to_money(a) for _, a, _ in rows), Decimal("0"))),
        "categories": categories,
    }


def average_processing_days(db: Session) -> float:
    reports = (
        db.query(ExpenseReport.submitted_at, ExpenseReport.approved_at, ExpenseReport.rejected_at)
        .filter(
            ExpenseReport.status.in_(
                [ReportStatus.APPROVED, ReportStatus.REJECTED, ReportStatus.REIMBURSED]
            ),
            ExpenseReport.submitted_at.isnot(None),
        )
        .all()
    )

    days = []
    for submitted_at, approved_at, rejected_at in reports:
        processed_at = approved_at or rejected_at
        if processed_at is None:
            continue
        elapsed = abs((processed_at - submitted_at).total_seconds())
        days.append(math.ceil(elapsed / 86400))

    if not days:
        return 0.0
    return round(sum(days) / len(days), 1)


def admin_metrics(db: Session) -> dict:
    now = datetime.utcnow()
    start_of_year = datetime(now.year, 1, 1)
    stale_before = now - timedelta(days=settings.STALE_SUBMISSION_DAYS)

    def count(*criteria) -> int:
        return db.query(func.count(ExpenseReport.id)).filter(*criteria).scalar() or 0

    return {
        "pending_reimbursement_amount": float(pending_reimbursement_amount(db)),
        "ytd_approved_count": count(
            ExpenseReport.status == ReportStatus.APPROVED,
            ExpenseReport.approved_at >= start_of_year,
        ),
        "ytd_rejected_count": count(
            ExpenseReport.status == ReportStatus.REJECTED,
            ExpenseReport.rejected_at >= start_of_year,
        ),
        "avg_processing_days": average_processing_days(db),
        "queue": {
            "awaiting_approval": count(ExpenseReport.status == ReportStatus.SUBMITTED),
            "awaiting_reimbursement": count(ExpenseReport.status == ReportStatus.APPROVED),
            "stale_submissions": count(
                ExpenseReport.status == ReportStatus.SUBMITTED,
                ExpenseReport.submitted_at < stale_before,
            ),
        },
        "reimbursed_by_timeframe": {
            tf: reimbursed_total(db, tf)["total_amount"]
            for tf in TIMEFRAMES
            if tf != "custom"
        },
    }


def user_reports_summary(db: Session, owner_id) -> dict:
    rows = (
        db.query(
            ExpenseReport.status,
            func.count(ExpenseReport.id),
            func.sum(ExpenseReport.total_amount),
        )
        .filter(ExpenseReport.user_id == owner_id)
        .group_by(ExpenseReport.status)
        .all()
    )
    by_status = {s.value: {"count": 0, "total_amount": 0.0} for s in ReportStatus}
    for status, count, amount in rows:
        by_status[ReportStatus(status).value] = {
            "count": count,
            "total_amount": float(to_money(amount)),
        }

    unreported_count, unreported_amount = (
        db.query(func.count(Expense.id), func.sum(Expense.amount))
        .filter(Expense.user_id == owner_id, Expense.status == ExpenseStatus.UNREPORTED)
        .one()
    )
    last_submitted_at = (
        db.query(func.max(ExpenseReport.submitted_at))
        .filter(ExpenseReport.user_id == owner_id)
        .scalar()
    )

    return {
        "by_status": by_status,
        "unreported_expense_count": unreported_count or 0,
        "unreported_expense_amount": float(to_money(unreported_amount)),
        "last_submitted_at": last_submitted_at,
    }
