import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import NotFoundOrForbidden
from app.db.session import transaction
from app.models.expense import Expense, ExpenseCategory, ExpenseStatus
from app.models.expense_report import ExpenseReport
from app.models.history import ExpenseEventType
from app.schemas.expense import ExpenseCreate, ExpenseFilter, ExpenseUpdate
from app.schemas.expense_report import BulkActionResult
from app.services.expense_report_service import attach_expenses, run_bulk
from app.services.history import list_expense_history, record_expense_event
from app.services.receipt_storage import (
    URL_PREFIX,
    delete_receipt,
    delete_receipts_quietly,
    key_from_url,
    resolve_receipt,
)
from app.services.state_machine import ReportStateMachine
from app.utils.calculations import recalculate_report_total, to_money

logger = logging.getLogger(__name__)

# Changing these on a reported expense moves the report's figures
AMOUNT_FIELDS = {"amount", "claim_reimbursement"}


def _get_owned_expense(db: Session, expense_id, owner_id) -> Expense:
    expense = db.query(Expense).filter(Expense.id == expense_id).first()
    if not expense or expense.user_id != owner_id:
        raise NotFoundOrForbidden("Expense not found")
    return expense


def _locked_parent(db: Session, expense: Expense) -> Optional[ExpenseReport]:
    if expense.report_id is None:
        return None
    report = (
        db.query(ExpenseReport)
        .filter(ExpenseReport.id == expense.report_id)
        .with_for_update()
        .first()
    )
    if report is not None:
        ReportStateMachine.ensure_unlocked(report)
    return report


def get_expense(db: Session, expense_id, owner_id) -> Expense:
    return _get_owned_expense(db, expense_id, owner_id)


def list_expenses(
    db: Session,
    owner_id,
    filters: Optional[ExpenseFilter] = None,
    page: int = 1,
    page_size: int = 10,
) -> Tuple[List[Expense], int]:
    query = db.query(Expense).filter(Expense.user_id == owner_id)

    if filters:
        if filters.start_date:
            query = query.filter(Expense.date >= filters.start_date)
        if filters.end_date:
            query = query.filter(Expense.date <= filters.end_date)
        if filters.category:
            query = query.filter(Expense.category == filters.category)
        if filters.status:
            query = query.filter(Expense.status == filters.status)
        if filters.min_amount is not None:
            query = query.filter(Expense.amount >= filters.min_amount)
        if filters.max_amount is not None:
            query = query.filter(Expense.amount <= filters.max_amount)
        if filters.report_id:
            query = query.filter(Expense.report_id == filters.report_id)
        if filters.search:
            pattern = f"%{filters.search}%"
            query = query.filter(
                or_(Expense.description.ilike(pattern), Expense.merchant.ilike(pattern))
            )

    total = query.count()
    items = (
        query.options(selectinload(Expense.report))
        .order_by(Expense.date.desc(), Expense.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def create_expense(db: Session, owner_id, payload: ExpenseCreate) -> Expense:
    with transaction(db):
        data = payload.model_dump(exclude={"report_id"})
        expense = Expense(
            user_id=owner_id,
            status=ExpenseStatus.UNREPORTED,
            **data,
        )
        db.add(expense)
        db.flush()
        record_expense_event(
            db, expense.id, ExpenseEventType.CREATED, "Expense created", performed_by_id=owner_id
        )

        if payload.report_id:
            report = (
                db.query(ExpenseReport)
                .filter(ExpenseReport.id == payload.report_id)
                .with_for_update()
                .first()
            )
            if not report or report.user_id != owner_id:
                raise NotFoundOrForbidden("Report not found")
            attach_expenses(db, report, [expense], owner_id)

    db.refresh(expense)
    logger.info("Expense %s created by %s", expense.id, owner_id)
    return expense


def update_expense(db: Session, expense_id, owner_id, payload: ExpenseUpdate) -> Expense:
    with transaction(db):
        expense = _get_owned_expense(db, expense_id, owner_id)
        report = _locked_parent(db, expense)

        data = payload.model_dump(exclude_unset=True)
        for field in ("amount", "date", "merchant", "category", "description", "claim_reimbursement"):
            # Required columns cannot be cleared
            if field in data and data[field] is None:
                data.pop(field)
        if "receipt_urls" in data and data["receipt_urls"] is None:
            data["receipt_urls"] = []

        for k, v in data.items():
            setattr(expense, k, v)

        record_expense_event(
            db,
            expense.id,
            ExpenseEventType.UPDATED,
            f"Updated fields: {', '.join(sorted(data)) or 'none'}",
            performed_by_id=owner_id,
            report_id=expense.report_id,
        )

        if report is not None and AMOUNT_FIELDS & data.keys():
            recalculate_report_total(db, report)

    db.refresh(expense)
    return expense


def delete_expense(db: Session, expense_id, owner_id) -> None:
    with transaction(db):
        expense = _get_owned_expense(db, expense_id, owner_id)
        report = _locked_parent(db, expense)
        receipts = list(expense.receipt_urls or [])

        record_expense_event(
            db,
            expense.id,
            ExpenseEventType.DELETED,
            f"Expense deleted ({expense.merchant}, {to_money(expense.amount)})",
            performed_by_id=owner_id,
            report_id=expense.report_id,
        )
        db.delete(expense)
        if report is not None:
            recalculate_report_total(db, report)

    logger.info("Expense %s deleted by %s", expense_id, owner_id)
    delete_receipts_quietly(receipts)


def bulk_delete_expenses(db: Session, expense_ids, owner_id) -> BulkActionResult:
    return run_bulk(
        db, expense_ids, lambda eid: delete_expense(db, eid, owner_id), "expense delete"
    )


def get_expense_history(db: Session, expense_id, owner_id):
    _get_owned_expense(db, expense_id, owner_id)
    return list_expense_history(db, expense_id)


def list_categories() -> List[str]:
    return [c.value for c in ExpenseCategory]


def expense_stats(db: Session, owner_id) -> dict:
    rows = (
        db.query(Expense.status, func.count(Expense.id), func.sum(Expense.amount))
        .filter(Expense.user_id == owner_id)
        .group_by(Expense.status)
        .all()
    )

    by_status = {s.value: {"count": 0, "total_amount": 0.0} for s in ExpenseStatus}
    total_count = 0
    total_amount = Decimal("0")
    for status, count, amount in rows:
        amount = to_money(amount)
        by_status[ExpenseStatus(status).value] = {"count": count, "total_amount": float(amount)}
        total_count += count
        total_amount += amount

    return {
        "total_count": total_count,
        "total_amount": float(total_amount),
        "by_status": by_status,
    }


def remove_receipt(db: Session, url: str, owner_id) -> None:
    """Delete a stored receipt and unlink it from the owner's expenses.

    A receipt referenced by anyone else's expense is reported as missing.
    """
    url = f"{URL_PREFIX}{key_from_url(url)}"
    resolve_receipt(url)

    with transaction(db):
        candidates = (
            db.query(Expense)
            .filter(cast(Expense.receipt_urls, String).like(f"%{key_from_url(url)}%"))
            .all()
        )
        referencing = [e for e in candidates if url in (e.receipt_urls or [])]
        if any(e.user_id != owner_id for e in referencing):
            raise NotFoundOrForbidden("Receipt not found")

        for expense in referencing:
            _locked_parent(db, expense)
            # Reassign so the JSON column is flagged dirty
            expense.receipt_urls = [u for u in expense.receipt_urls if u != url]
            record_expense_event(
                db,
                expense.id,
                ExpenseEventType.UPDATED,
                "Receipt removed",
                performed_by_id=owner_id,
                report_id=expense.report_id,
            )

    delete_receipt(url)
    logger.info("Receipt %s removed by %s", url, owner_id)
