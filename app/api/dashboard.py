# app/api/dashboard.py

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.auth import get_current_user
from app.core.permissions import require_roles
from app.core.roles import APPROVER_ROLES
from app.models.user import User
from app.schemas.dashboard import (
    AdminMetrics,
    CategoryBreakdown,
    TimeframeTotal,
    UserReportsSummary,
)
from app.services import dashboard_service

router = APIRouter(tags=["Dashboard"])

approver_only = require_roles(APPROVER_ROLES)


# --------------------------------------------------
# ADMIN
# --------------------------------------------------
@router.get("/admin/dashboard/metrics", response_model=AdminMetrics)
def admin_metrics(
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    return dashboard_service.admin_metrics(db)


@router.get("/admin/dashboard/reimbursed", response_model=TimeframeTotal)
def reimbursed_total(
    timeframe: str = Query("month"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    return dashboard_service.reimbursed_total(db, timeframe, start, end)


@router.get("/admin/dashboard/categories", response_model=CategoryBreakdown)
def category_breakdown(
    timeframe: str = Query("all_time"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(approver_only),
):
    return dashboard_service.category_breakdown(db, timeframe, start, end)


# --------------------------------------------------
# CURRENT USER
# --------------------------------------------------
@router.get("/dashboard/summary", response_model=UserReportsSummary)
def my_summary(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return dashboard_service.user_reports_summary(db, current_user.id)
