"""Expense report state machine with transition validation."""

from typing import Dict, List

from app.core.exceptions import InvalidTransition, ReportLocked
from app.models.expense_report import ReportStatus


class ReportStateMachine:
    """State machine for expense report status transitions.

    Allowed transitions:
    - DRAFT → SUBMITTED
    - SUBMITTED → APPROVED
    - SUBMITTED → REJECTED
    - APPROVED → REIMBURSED

    REJECTED and REIMBURSED are terminal. There is no resubmission path.
    """

    VALID_TRANSITIONS: Dict[ReportStatus, List[ReportStatus]] = {
        ReportStatus.DRAFT: [ReportStatus.SUBMITTED],
        ReportStatus.SUBMITTED: [ReportStatus.APPROVED, ReportStatus.REJECTED],
        ReportStatus.APPROVED: [ReportStatus.REIMBURSED],
        ReportStatus.REJECTED: [],
        ReportStatus.REIMBURSED: [],
    }

    # Content (fields, expenses) is frozen and the report cannot be deleted
    LOCKED_STATUSES = {
        ReportStatus.APPROVED,
        ReportStatus.REIMBURSED,
    }

    @classmethod
    def can_transition(cls, from_status, to_status) -> bool:
        allowed = cls.VALID_TRANSITIONS.get(ReportStatus(from_status), [])
        return ReportStatus(to_status) in allowed

    @classmethod
    def validate_transition(cls, from_status, to_status, reason: str = None) -> None:
        """Raise InvalidTransition unless from_status → to_status is allowed."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransition(from_status, to_status, reason)

    @classmethod
    def is_locked(cls, status) -> bool:
        return ReportStatus(status) in cls.LOCKED_STATUSES

    @classmethod
    def ensure_unlocked(cls, report) -> None:
        if cls.is_locked(report.status):
            raise ReportLocked(
                f"Report is {ReportStatus(report.status).value.lower()} and can no longer be modified"
            )

    @classmethod
    def get_next_statuses(cls, current_status) -> List[ReportStatus]:
        return list(cls.VALID_TRANSITIONS.get(ReportStatus(current_status), []))
