from fastapi import APIRouter

from app.core.constants import (
    EXPENSE_CATEGORIES,
    REIMBURSEMENT_METHODS,
    RECEIPT_EXTENSIONS,
)
from app.core.roles import ALL_ROLES
from app.models.expense_report import ReportStatus
from app.utils.formatting import status_display

router = APIRouter(prefix="/reference-data", tags=["Reference Data"])


@router.get("")
def get_reference_data():
    return {
        "expense_categories": EXPENSE_CATEGORIES,
        "reimbursement_methods": REIMBURSEMENT_METHODS,
        "receipt_extensions": RECEIPT_EXTENSIONS,
        "roles": ALL_ROLES,
        "report_statuses": [
            {"value": s.value, **status_display(s).model_dump()} for s in ReportStatus
        ],
    }
