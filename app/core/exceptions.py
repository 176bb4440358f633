# app/core/exceptions.py
"""Domain errors.

They subclass ``HTTPException`` so a service can raise them and FastAPI
renders the right status; ``code`` is the stable reason used by bulk
operations when they skip a report.
"""

from fastapi import HTTPException, status


class ExpenseAppError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"
    default_detail = "Request failed"

    def __init__(self, detail: str = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class NotFoundOrForbidden(ExpenseAppError):
    # Missing and not-owned look the same to the caller
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_detail = "Not found"


class Forbidden(ExpenseAppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_detail = "Approver access required"


class ReportLocked(ExpenseAppError):
    status_code = status.HTTP_409_CONFLICT
    code = "report_locked"
    default_detail = "Report is locked"


class InvalidTransition(ExpenseAppError):
    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"

    def __init__(self, from_status, to_status, reason: str = None):
        self.from_status = getattr(from_status, "value", from_status)
        self.to_status = getattr(to_status, "value", to_status)
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NoExpenses(ExpenseAppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "no_expenses"
    default_detail = "Cannot submit a report without expenses"


class ValidationError(ExpenseAppError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"
    default_detail = "Invalid input"


class EmailTaken(ExpenseAppError):
    status_code = status.HTTP_409_CONFLICT
    code = "email_taken"
    default_detail = "Email already registered"


class DomainNotAllowed(ExpenseAppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "domain_not_allowed"
    default_detail = "Email domain not allowed"
