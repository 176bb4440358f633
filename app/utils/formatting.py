"""Presentation helpers; statuses are stored as bare enums only."""

from pydantic import BaseModel

from app.models.expense import ExpenseStatus
from app.models.expense_report import ReportStatus


class StatusDisplay(BaseModel):
    label: str
    color: str


_DISPLAY = {
    ReportStatus.DRAFT: ("Draft", "blue"),
    ReportStatus.SUBMITTED: ("Submitted", "orange"),
    ReportStatus.APPROVED: ("Approved", "green"),
    ReportStatus.REJECTED: ("Rejected", "red"),
    ReportStatus.REIMBURSED: ("Reimbursed", "green"),
    ExpenseStatus.UNREPORTED: ("Unreported", "blue"),
    ExpenseStatus.REPORTED: ("Reported", "orange"),
}


def status_display(status) -> StatusDisplay:
    label, color = _DISPLAY.get(status, (str(getattr(status, "value", status)).title(), "gray"))
    return StatusDisplay(label=label, color=color)


def format_money(amount) -> str:
    return f"{float(amount or 0):,.2f}"


def format_date_for_email(value) -> str:
    if not value:
        return "N/A"
    return value.strftime("%B %d, %Y %I:%M %p") if hasattr(value, "hour") else value.strftime("%B %d, %Y")
