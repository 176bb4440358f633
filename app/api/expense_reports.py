# app/api/expense_reports.py

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.auth import get_current_user
from app.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.models.user import User
from app.models.expense_report import ReportStatus
from app.schemas.expense_report import (
    BulkActionResult,
    BulkReportRequest,
    ExpenseReportCreate,
    ExpenseReportListResponse,
    ExpenseReportOut,
    ExpenseReportUpdate,
    ReportExpensesRequest,
    ReportFilter,
)
from app.schemas.history import ReportHistoryOut
from app.services import expense_report_service as reports

router = APIRouter(tags=["Expense Reports"])


# --------------------------------------------------
# CREATE DRAFT
# --------------------------------------------------
@router.post("", response_model=ExpenseReportOut, status_code=status.HTTP_201_CREATED)
def create_report(
    payload: ExpenseReportCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reports.create_report(db, current_user.id, payload)


# --------------------------------------------------
# LIST MY REPORTS
# --------------------------------------------------
@router.get("", response_model=ExpenseReportListResponse)
def list_my_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    filters = ReportFilter(
        status=status_filter, search=search, start_date=start_date, end_date=end_date
    )
    items, total = reports.list_reports(db, current_user.id, filters, page, page_size)
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": reports.total_pages(total, page_size),
    }


# --------------------------------------------------
# BULK
# --------------------------------------------------
@router.post("/bulk-submit", response_model=BulkActionResult)
def bulk_submit(
    payload: BulkReportRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reports.bulk_submit(db, payload.report_ids, current_user.id)


@router.post("/bulk-delete", response_model=BulkActionResult)
def bulk_delete(
    payload: BulkReportRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reports.bulk_delete_reports(db, payload.report_ids, current_user.id)


# --------------------------------------------------
# GET ONE REPORT
# --------------------------------------------------
@router.get("/{report_id}", response_model=ExpenseReportOut)
def get_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reports.get_report(db, report_id, current_user)


@router.get("/{report_id}/history", response_model=List[ReportHistoryOut])
def get_report_history(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reports.get_report_history(db, report_id, current_user)


# --------------------------------------------------
# UPDATE DRAFT HEADER
# --------------------------------------------------
@router.put("/{report_id}", response_model=ExpenseReportOut)
def update_report(
    report_id: UUID,
    payload: ExpenseReportUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reports.update_report(db, report_id, current_user.id, payload)


# --------------------------------------------------
# DELETE (unlocked only)
# --------------------------------------------------
@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reports.delete_report(db, report_id, current_user.id)
    return None


# --------------------------------------------------
# EXPENSES ON A REPORT
# --------------------------------------------------
@router.post("/{report_id}/expenses", response_model=ExpenseReportOut)
def add_expenses(
    report_id: UUID,
    payload: ReportExpensesRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reports.add_expenses_to_report(db, report_id, payload.expense_ids, current_user.id)


@router.delete("/{report_id}/expenses", response_model=ExpenseReportOut)
def remove_expenses(
    report_id: UUID,
    payload: ReportExpensesRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reports.remove_expenses_from_report(db, report_id, payload.expense_ids, current_user.id)


# --------------------------------------------------
# SUBMIT REPORT
# --------------------------------------------------
@router.post("/{report_id}/submit", response_model=ExpenseReportOut)
def submit_expense_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return reports.submit_report(db, report_id, current_user.id)
