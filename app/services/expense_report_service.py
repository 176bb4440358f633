"""Expense report lifecycle.

Every mutating operation runs in one transaction covering the row updates,
the total recomputation and the history insert. Notifications and emails
go out only after the commit and never fail the call.
"""

import logging
import math
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import (
    ExpenseAppError,
    Forbidden,
    NoExpenses,
    NotFoundOrForbidden,
    ValidationError,
)
from app.core.roles import is_approver
from app.db.session import transaction
from app.models.expense import Expense, ExpenseStatus
from app.models.expense_report import ExpenseReport, ReportStatus
from app.models.history import ExpenseEventType, ReportEventType
from app.models.user import User
from app.schemas.expense_report import (
    BulkActionResult,
    BulkSkip,
    ExpenseReportCreate,
    ExpenseReportUpdate,
    RecordReimbursementRequest,
    ReportFilter,
)
from app.services.history import (
    list_report_history,
    record_expense_event,
    record_report_event,
)
from app.services.notification_service import dispatch_status_change
from app.services.state_machine import ReportStateMachine
from app.utils.calculations import recalculate_report_total

logger = logging.getLogger(__name__)


# --------------------------------------------------
# LOOKUPS
# --------------------------------------------------
def _load_report(db: Session, report_id, lock: bool = False) -> Optional[ExpenseReport]:
    query = db.query(ExpenseReport).filter(ExpenseReport.id == report_id)
    if lock:
        # Serialises concurrent transitions on the same row
        query = query.with_for_update()
    return query.first()


def _get_owned_report(db: Session, report_id, owner_id, lock: bool = False) -> ExpenseReport:
    report = _load_report(db, report_id, lock=lock)
    if not report or report.user_id != owner_id:
        raise NotFoundOrForbidden("Report not found")
    return report


def _get_report_for_approver(db: Session, report_id) -> ExpenseReport:
    report = _load_report(db, report_id, lock=True)
    if not report:
        raise NotFoundOrForbidden("Report not found")
    return report


def _require_approver(db: Session, approver_id) -> User:
    approver = db.get(User, approver_id)
    if not is_approver(approver):
        raise Forbidden()
    return approver


def get_report(db: Session, report_id, user: User) -> ExpenseReport:
    """Owners see their own reports; approvers see every report."""
    report = (
        db.query(ExpenseReport)
        .options(
            selectinload(ExpenseReport.expenses),
            selectinload(ExpenseReport.user),
            selectinload(ExpenseReport.approved_by),
        )
        .filter(ExpenseReport.id == report_id)
        .first()
    )
    if not report:
        raise NotFoundOrForbidden("Report not found")
    if report.user_id != user.id and not is_approver(user):
        raise NotFoundOrForbidden("Report not found")
    return report


def list_reports(
    db: Session,
    owner_id=None,
    filters: Optional[ReportFilter] = None,
    page: int = 1,
    page_size: int = 10,
) -> Tuple[List[ExpenseReport], int]:
    """Page through reports; ``owner_id=None`` lists every user's reports."""
    query = db.query(ExpenseReport)

    if owner_id is not None:
        query = query.filter(ExpenseReport.user_id == owner_id)

    if filters:
        if filters.status:
            query = query.filter(ExpenseReport.status == filters.status)
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.filter(
                or_(
                    ExpenseReport.title.ilike(pattern),
                    ExpenseReport.description.ilike(pattern),
                )
            )
        if filters.start_date:
            query = query.filter(
                ExpenseReport.created_at >= datetime.combine(filters.start_date, datetime.min.time())
            )
        if filters.end_date:
            query = query.filter(
                ExpenseReport.created_at <= datetime.combine(filters.end_date, datetime.max.time())
            )

    total = query.count()
    items = (
        query.options(
            selectinload(ExpenseReport.expenses),
            selectinload(ExpenseReport.user),
            selectinload(ExpenseReport.approved_by),
        )
        .order_by(ExpenseReport.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size else 0


def get_report_history(db: Session, report_id, user: User):
    get_report(db, report_id, user)
    return list_report_history(db, report_id)


# --------------------------------------------------
# CREATE / UPDATE / DELETE
# --------------------------------------------------
def create_report(db: Session, owner_id, payload: ExpenseReportCreate) -> ExpenseReport:
    with transaction(db):
        report = ExpenseReport(
            user_id=owner_id,
            title=payload.title,
            description=payload.description,
            start_date=payload.start_date,
            end_date=payload.end_date,
            status=ReportStatus.DRAFT,
            total_amount=0,
        )
        db.add(report)
        db.flush()
        record_report_event(
            db, report.id, ReportEventType.CREATED, "Report created", performed_by_id=owner_id
        )

    db.refresh(report)
    logger.info("Report %s created by %s", report.id, owner_id)
    return report


def update_report(db: Session, report_id, owner_id, payload: ExpenseReportUpdate) -> ExpenseReport:
    with transaction(db):
        report = _get_owned_report(db, report_id, owner_id, lock=True)
        ReportStateMachine.ensure_unlocked(report)

        data = payload.model_dump(exclude_unset=True)
        start = data.get("start_date", report.start_date)
        end = data.get("end_date", report.end_date)
        if start and end and start > end:
            raise ValidationError("start_date must be before end_date")

        for k, v in data.items():
            setattr(report, k, v)

        record_report_event(
            db,
            report.id,
            ReportEventType.UPDATED,
            f"Updated fields: {', '.join(sorted(data)) or 'none'}",
            performed_by_id=owner_id,
        )

    db.refresh(report)
    return report


def _detach_expenses(db: Session, report: ExpenseReport, expenses: Iterable[Expense], actor_id) -> int:
    count = 0
    for expense in expenses:
        expense.report_id = None
        expense.status = ExpenseStatus.UNREPORTED
        record_expense_event(
            db,
            expense.id,
            ExpenseEventType.REMOVED_FROM_REPORT,
            f"Removed from report '{report.title}'",
            performed_by_id=actor_id,
            report_id=report.id,
        )
        count += 1
    return count


def delete_report(db: Session, report_id, owner_id) -> None:
    """Delete an unlocked report; its expenses go back to UNREPORTED."""
    with transaction(db):
        report = _get_owned_report(db, report_id, owner_id, lock=True)
        ReportStateMachine.ensure_unlocked(report)

        attached = db.query(Expense).filter(Expense.report_id == report.id).all()
        detached = _detach_expenses(db, report, attached, owner_id)

        record_report_event(
            db,
            report.id,
            ReportEventType.DELETED,
            f"Report '{report.title}' deleted, {detached} expense(s) detached",
            performed_by_id=owner_id,
        )
        db.flush()
        db.delete(report)

    logger.info("Report %s deleted by %s", report_id, owner_id)


# --------------------------------------------------
# EXPENSE ASSOCIATION
# --------------------------------------------------
def attach_expenses(db: Session, report: ExpenseReport, expenses: Iterable[Expense], actor_id) -> int:
    """Associate already-authorised expenses with an unlocked report.

    Does not commit; the caller owns the transaction.
    """
    ReportStateMachine.ensure_unlocked(report)

    count = 0
    for expense in expenses:
        if expense.report_id == report.id:
            continue
        if expense.report_id is not None:
            raise ValidationError(
                f"Expense {expense.id} already belongs to another report"
            )
        expense.report_id = report.id
        expense.status = ExpenseStatus.REPORTED
        record_expense_event(
            db,
            expense.id,
            ExpenseEventType.ADDED_TO_REPORT,
            f"Added to report '{report.title}'",
            performed_by_id=actor_id,
            report_id=report.id,
        )
        count += 1

    recalculate_report_total(db, report)
    return count


def _load_owned_expenses(db: Session, expense_ids, owner_id) -> List[Expense]:
    ids = list(dict.fromkeys(expense_ids))
    expenses = db.query(Expense).filter(Expense.id.in_(ids)).all()
    found = {e.id for e in expenses if e.user_id == owner_id}
    missing = [i for i in ids if i not in found]
    if missing:
        raise NotFoundOrForbidden(f"Expense {missing[0]} not found")
    return expenses


def add_expenses_to_report(db: Session, report_id, expense_ids, actor_id) -> ExpenseReport:
    with transaction(db):
        report = _get_owned_report(db, report_id, actor_id, lock=True)
        ReportStateMachine.ensure_unlocked(report)
        expenses = _load_owned_expenses(db, expense_ids, actor_id)
        added = attach_expenses(db, report, expenses, actor_id)

    db.refresh(report)
    logger.info("Added %s expense(s) to report %s", added, report.id)
    return report


def remove_expenses_from_report(db: Session, report_id, expense_ids, actor_id) -> ExpenseReport:
    with transaction(db):
        report = _get_owned_report(db, report_id, actor_id, lock=True)
        ReportStateMachine.ensure_unlocked(report)

        ids = list(dict.fromkeys(expense_ids))
        expenses = (
            db.query(Expense)
            .filter(Expense.id.in_(ids), Expense.report_id == report.id)
            .all()
        )
        if len(expenses) != len(ids):
            logger.debug(
                "Ignoring %s expense id(s) not attached to report %s",
                len(ids) - len(expenses),
                report.id,
            )

        removed = _detach_expenses(db, report, expenses, actor_id)
        recalculate_report_total(db, report)

    db.refresh(report)
    logger.info("Removed %s expense(s) from report %s", removed, report.id)
    return report


# --------------------------------------------------
# TRANSITIONS
# --------------------------------------------------
def submit_report(db: Session, report_id, owner_id) -> ExpenseReport:
    with transaction(db):
        report = _get_owned_report(db, report_id, owner_id, lock=True)
        ReportStateMachine.validate_transition(report.status, ReportStatus.SUBMITTED)

        expenses = db.query(Expense).filter(Expense.report_id == report.id).all()
        if not any(e.amount is not None and e.amount > 0 for e in expenses):
            raise NoExpenses()

        amounts = recalculate_report_total(db, report)
        report.status = ReportStatus.SUBMITTED
        report.submitted_at = datetime.utcnow()

        record_report_event(
            db,
            report.id,
            ReportEventType.SUBMITTED,
            f"Report submitted for approval with total amount {amounts.total_amount:.2f}",
            performed_by_id=owner_id,
        )

    db.refresh(report)
    logger.info("Report %s submitted by %s", report.id, owner_id)
    dispatch_status_change(db, report, ReportStatus.SUBMITTED)
    return report


def approve_report(db: Session, report_id, approver_id) -> ExpenseReport:
    with transaction(db):
        _require_approver(db, approver_id)
        report = _get_report_for_approver(db, report_id)
        ReportStateMachine.validate_transition(report.status, ReportStatus.APPROVED)

        report.status = ReportStatus.APPROVED
        report.approved_at = datetime.utcnow()
        report.approved_by_id = approver_id

        record_report_event(
            db, report.id, ReportEventType.APPROVED, "Report approved", performed_by_id=approver_id
        )

    db.refresh(report)
    logger.info("Report %s approved by %s", report.id, approver_id)
    dispatch_status_change(db, report, ReportStatus.APPROVED)
    return report


def reject_report(db: Session, report_id, approver_id, reason: Optional[str] = None) -> ExpenseReport:
    with transaction(db):
        _require_approver(db, approver_id)
        report = _get_report_for_approver(db, report_id)
        ReportStateMachine.validate_transition(report.status, ReportStatus.REJECTED)

        report.status = ReportStatus.REJECTED
        report.rejected_at = datetime.utcnow()
        report.approved_by_id = approver_id
        report.rejection_reason = reason

        record_report_event(
            db,
            report.id,
            ReportEventType.REJECTED,
            f"Report rejected: {reason}" if reason else "Report rejected",
            performed_by_id=approver_id,
        )

    db.refresh(report)
    logger.info("Report %s rejected by %s", report.id, approver_id)
    dispatch_status_change(db, report, ReportStatus.REJECTED)
    return report


def record_reimbursement(
    db: Session, report_id, payload: RecordReimbursementRequest, approver_id
) -> ExpenseReport:
    with transaction(db):
        _require_approver(db, approver_id)
        report = _get_report_for_approver(db, report_id)
        ReportStateMachine.validate_transition(report.status, ReportStatus.REIMBURSED)

        if not payload.reimbursement_method or not payload.reimbursement_method.strip():
            raise ValidationError("Reimbursement method is required")

        report.status = ReportStatus.REIMBURSED
        report.reimbursed_at = datetime.utcnow()
        report.reimbursement_method = payload.reimbursement_method.strip()
        report.reimbursement_ref = payload.reimbursement_ref
        report.reimbursement_notes = payload.reimbursement_notes

        details = f"Report reimbursed via {report.reimbursement_method}"
        if payload.reimbursement_ref:
            details += f" (reference: {payload.reimbursement_ref})"
        record_report_event(
            db, report.id, ReportEventType.REIMBURSED, details, performed_by_id=approver_id
        )

    db.refresh(report)
    logger.info("Report %s reimbursed by %s", report.id, approver_id)
    dispatch_status_change(db, report, ReportStatus.REIMBURSED)
    return report


# --------------------------------------------------
# BULK
# --------------------------------------------------
def run_bulk(db: Session, ids, action: Callable, label: str) -> BulkActionResult:
    """Apply ``action`` to each id in its own transaction.

    A failing item is recorded in ``skipped`` and the batch carries on.
    """
    result = BulkActionResult()
    for item_id in dict.fromkeys(ids):
        try:
            action(item_id)
        except ExpenseAppError as exc:
            result.skipped.append(BulkSkip(id=item_id, reason=exc.code, detail=exc.detail))
        except Exception as exc:
            db.rollback()
            logger.exception("Bulk %s failed for %s", label, item_id)
            result.skipped.append(BulkSkip(id=item_id, reason="error", detail=str(exc)))
        else:
            result.succeeded.append(item_id)

    logger.info(
        "Bulk %s: %s succeeded, %s skipped", label, len(result.succeeded), len(result.skipped)
    )
    return result


def bulk_submit(db: Session, report_ids, owner_id) -> BulkActionResult:
    return run_bulk(db, report_ids, lambda rid: submit_report(db, rid, owner_id), "submit")


def bulk_approve(db: Session, report_ids, approver_id) -> BulkActionResult:
    _require_approver(db, approver_id)
    return run_bulk(db, report_ids, lambda rid: approve_report(db, rid, approver_id), "approve")


def bulk_reject(db: Session, report_ids, approver_id, reason: Optional[str] = None) -> BulkActionResult:
    _require_approver(db, approver_id)
    return run_bulk(
        db, report_ids, lambda rid: reject_report(db, rid, approver_id, reason), "reject"
    )


def bulk_reimburse(
    db: Session, report_ids, payload: RecordReimbursementRequest, approver_id
) -> BulkActionResult:
    _require_approver(db, approver_id)
    return run_bulk(
        db,
        report_ids,
        lambda rid: record_reimbursement(db, rid, payload, approver_id),
        "reimburse",
    )


def bulk_delete_reports(db: Session, report_ids, owner_id) -> BulkActionResult:
    return run_bulk(db, report_ids, lambda rid: delete_report(db, rid, owner_id), "delete")
