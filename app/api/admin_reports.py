# app/api/admin_reports.py

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.permissions import require_roles
from app.core.roles import APPROVER_ROLES
from app.models.user import User
from app.models.expense_report import ReportStatus
from app.schemas.expense_report import (
    BulkActionResult,
    BulkReimburseRequest,
    BulkRejectRequest,
    BulkReportRequest,
    ExpenseReportListResponse,
    ExpenseReportOut,
    RecordReimbursementRequest,
    RejectReportRequest,
    ReportFilter,
)
from app.services import expense_report_service as reports

# main.py mounts this router at /api/admin/reports
router = APIRouter(tags=["Admin Expense Reports"])

approver_only = require_roles(APPROVER_ROLES)


# --------------------------------------------------
# LIST ALL REPORTS
# --------------------------------------------------
@router.get("", response_model=ExpenseReportListResponse)
def list_all_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    filters = ReportFilter(
        status=status_filter, search=search, start_date=start_date, end_date=end_date
    )
    items, total = reports.list_reports(db, None, filters, page, page_size)
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": reports.total_pages(total, page_size),
    }


# --------------------------------------------------
# BULK DECISIONS
# --------------------------------------------------
@router.post("/bulk-approve", response_model=BulkActionResult)
def bulk_approve(
    payload: BulkReportRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    return reports.bulk_approve(db, payload.report_ids, current_user.id)


@router.post("/bulk-reject", response_model=BulkActionResult)
def bulk_reject(
    payload: BulkRejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    return reports.bulk_reject(db, payload.report_ids, current_user.id, payload.reason)


@router.post("/bulk-reimburse", response_model=BulkActionResult)
def bulk_reimburse(
    payload: BulkReimburseRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    details = RecordReimbursementRequest(
        reimbursement_method=payload.reimbursement_method,
        reimbursement_ref=payload.reimbursement_ref,
        reimbursement_notes=payload.reimbursement_notes,
    )
    return reports.bulk_reimburse(db, payload.report_ids, details, current_user.id)


# --------------------------------------------------
# SINGLE REPORT
# --------------------------------------------------
@router.get("/{report_id}", response_model=ExpenseReportOut)
def get_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    return reports.get_report(db, report_id, current_user)


@router.post("/{report_id}/approve", response_model=ExpenseReportOut)
def approve_report(
    report_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    return reports.approve_report(db, report_id, current_user.id)


@router.post("/{report_id}/reject", response_model=ExpenseReportOut)
def reject_report(
    report_id: UUID,
    payload: Optional[RejectReportRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    reason = payload.reason if payload else None
    return reports.reject_report(db, report_id, current_user.id, reason)


@router.post("/{report_id}/reimburse", response_model=ExpenseReportOut)
def record_reimbursement(
    report_id: UUID,
    payload: RecordReimbursementRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    return reports.record_reimbursement(db, report_id, payload, current_user.id)
