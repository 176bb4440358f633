from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.api.auth import get_current_user
from app.core.constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from app.core.exceptions import ValidationError
from app.models.expense import ExpenseCategory, ExpenseStatus
from app.models.user import User
from app.schemas.expense import (
    ExpenseBulkDeleteRequest,
    ExpenseCreate,
    ExpenseFilter,
    ExpenseListResponse,
    ExpenseResponse,
    ExpenseStats,
    ExpenseUpdate,
)
from app.schemas.expense_report import BulkActionResult
from app.schemas.history import ExpenseHistoryOut
from app.services import expense_service
from app.services.expense_report_service import total_pages

router = APIRouter(tags=["Expenses"])


@router.get("/categories", response_model=List[str])
def list_categories():
    return expense_service.list_categories()


@router.get("/stats", response_model=ExpenseStats)
def expense_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return expense_service.expense_stats(db, current_user.id)


@router.get("", response_model=ExpenseListResponse)
def list_expenses(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category: Optional[ExpenseCategory] = None,
    status_filter: Optional[ExpenseStatus] = Query(None, alias="status"),
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    search: Optional[str] = None,
    report_id: Optional[UUID] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        filters = ExpenseFilter(
            start_date=start_date,
            end_date=end_date,
            category=category,
            status=status_filter,
            min_amount=min_amount,
            max_amount=max_amount,
            search=search,
            report_id=report_id,
        )
    except SchemaError as exc:
        raise ValidationError(exc.errors()[0]["msg"])
    items, total = expense_service.list_expenses(db, current_user.id, filters, page, page_size)
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": total_pages(total, page_size),
    }


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
def create_expense(
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return expense_service.create_expense(db, current_user.id, payload)


@router.post("/bulk-delete", response_model=BulkActionResult)
def bulk_delete_expenses(
    payload: ExpenseBulkDeleteRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return expense_service.bulk_delete_expenses(db, payload.expense_ids, current_user.id)


@router.get("/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    expense_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return expense_service.get_expense(db, expense_id, current_user.id)


@router.get("/{expense_id}/history", response_model=List[ExpenseHistoryOut])
def get_expense_history(
    expense_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return expense_service.get_expense_history(db, expense_id, current_user.id)


@router.put("/{expense_id}", response_model=ExpenseResponse)
def update_expense(
    expense_id: UUID,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return expense_service.update_expense(db, expense_id, current_user.id, payload)


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    expense_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    expense_service.delete_expense(db, expense_id, current_user.id)
    return None
