"""Tests for the expense report lifecycle engine."""

from decimal import Decimal

import pytest

from app.core.exceptions import (
    Forbidden,
    InvalidTransition,
    NoExpenses,
    NotFoundOrForbidden,
    ReportLocked,
    ValidationError,
)
from app.models.expense import Expense, ExpenseStatus
from app.models.expense_report import ExpenseReport, ReportStatus
from app.models.history import ExpenseEventType, ExpenseHistory, ReportEventType, ReportHistory
from app.models.notification import Notification, NotificationType
from app.schemas.expense_report import ExpenseReportUpdate, RecordReimbursementRequest
from app.services import expense_report_service as reports
from app.utils.calculations import compute_report_amounts


def _attached_sum(db, report):
    expenses = db.query(Expense).filter(Expense.report_id == report.id).all()
    return sum((e.amount for e in expenses), Decimal("0.00"))


def _report_events(db, report_id, event_type):
    return (
        db.query(ReportHistory)
        .filter(ReportHistory.report_id == report_id, ReportHistory.event_type == event_type)
        .all()
    )


def _approved_report(db, employee, admin, make_report, make_expense):
    report = make_report(employee)
    expense = make_expense(employee, "80.00")
    reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
    reports.submit_report(db, report.id, employee.id)
    return reports.approve_report(db, report.id, admin.id), expense


class TestTotals:
    def test_total_tracks_attached_expenses(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        e1 = make_expense(employee, "10.50")
        e2 = make_expense(employee, "20.25")

        report = reports.add_expenses_to_report(db, report.id, [e1.id, e2.id], employee.id)
        assert report.total_amount == _attached_sum(db, report) == Decimal("30.75")

        report = reports.remove_expenses_from_report(db, report.id, [e1.id], employee.id)
        assert report.total_amount == _attached_sum(db, report) == Decimal("20.25")

        report = reports.submit_report(db, report.id, employee.id)
        assert report.total_amount == _attached_sum(db, report) == Decimal("20.25")

    def test_add_then_remove_restores_state(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        e1 = make_expense(employee, "12.00")
        e2 = make_expense(employee, "8.00")
        before = report.total_amount

        reports.add_expenses_to_report(db, report.id, [e1.id, e2.id], employee.id)
        report = reports.remove_expenses_from_report(db, report.id, [e1.id, e2.id], employee.id)

        assert report.total_amount == before
        for expense in (e1, e2):
            db.refresh(expense)
            assert expense.status == ExpenseStatus.UNREPORTED
            assert expense.report_id is None

    def test_submit_splits_non_reimbursable(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        e1 = make_expense(employee, "100.00")
        e2 = make_expense(employee, "50.00", claim_reimbursement=False)
        reports.add_expenses_to_report(db, report.id, [e1.id, e2.id], employee.id)

        report = reports.submit_report(db, report.id, employee.id)

        amounts = compute_report_amounts(report.expenses)
        assert report.total_amount == Decimal("150.00")
        assert amounts.amount_to_be_reimbursed == Decimal("100.00")
        assert amounts.non_reimbursable_amount == Decimal("50.00")


class TestExpenseAssociation:
    def test_add_marks_expenses_reported(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        expense = make_expense(employee)

        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)

        db.refresh(expense)
        assert expense.status == ExpenseStatus.REPORTED
        assert expense.report_id == report.id
        events = (
            db.query(ExpenseHistory)
            .filter(
                ExpenseHistory.expense_id == expense.id,
                ExpenseHistory.event_type == ExpenseEventType.ADDED_TO_REPORT,
            )
            .all()
        )
        assert len(events) == 1

    def test_add_foreign_expense_is_not_found(
        self, db, employee, other_employee, make_report, make_expense
    ):
        report = make_report(employee)
        foreign = make_expense(other_employee)

        with pytest.raises(NotFoundOrForbidden):
            reports.add_expenses_to_report(db, report.id, [foreign.id], employee.id)

        db.refresh(foreign)
        assert foreign.report_id is None

    def test_add_expense_from_another_report(self, db, employee, make_report, make_expense):
        first = make_report(employee, "First")
        second = make_report(employee, "Second")
        expense = make_expense(employee)
        reports.add_expenses_to_report(db, first.id, [expense.id], employee.id)

        with pytest.raises(ValidationError):
            reports.add_expenses_to_report(db, second.id, [expense.id], employee.id)

        db.refresh(expense)
        assert expense.report_id == first.id

    def test_remove_ignores_unattached_ids(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        attached = make_expense(employee, "40.00")
        loose = make_expense(employee, "5.00")
        reports.add_expenses_to_report(db, report.id, [attached.id], employee.id)

        report = reports.remove_expenses_from_report(db, report.id, [loose.id], employee.id)

        assert report.total_amount == Decimal("40.00")

    def test_other_users_report_is_not_found(
        self, db, employee, other_employee, make_report, make_expense
    ):
        report = make_report(employee)
        expense = make_expense(other_employee)

        with pytest.raises(NotFoundOrForbidden):
            reports.add_expenses_to_report(db, report.id, [expense.id], other_employee.id)


class TestLockedReports:
    def test_locked_report_rejects_changes(
        self, db, employee, admin, make_report, make_expense
    ):
        report, attached = _approved_report(db, employee, admin, make_report, make_expense)
        extra = make_expense(employee, "5.00")
        total_before = report.total_amount

        with pytest.raises(ReportLocked):
            reports.add_expenses_to_report(db, report.id, [extra.id], employee.id)
        with pytest.raises(ReportLocked):
            reports.remove_expenses_from_report(db, report.id, [attached.id], employee.id)
        with pytest.raises(ReportLocked):
            reports.update_report(db, report.id, employee.id, ExpenseReportUpdate(title="New"))
        with pytest.raises(ReportLocked):
            reports.delete_report(db, report.id, employee.id)

        db.expire_all()
        report = db.get(ExpenseReport, report.id)
        assert report.status == ReportStatus.APPROVED
        assert report.total_amount == total_before
        assert report.title == "March travel"
        assert db.get(Expense, extra.id).report_id is None
        assert db.get(Expense, attached.id).report_id == report.id

    def test_rejected_report_stays_editable(
        self, db, employee, admin, make_report, make_expense
    ):
        report = make_report(employee)
        expense = make_expense(employee)
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
        reports.submit_report(db, report.id, employee.id)
        reports.reject_report(db, report.id, admin.id, "Missing receipts")

        report = reports.update_report(
            db, report.id, employee.id, ExpenseReportUpdate(description="Receipts attached")
        )
        assert report.description == "Receipts attached"

        with pytest.raises(InvalidTransition):
            reports.submit_report(db, report.id, employee.id)


class TestTransitions:
    def test_submit_without_expenses(self, db, employee, make_report):
        report = make_report(employee)

        with pytest.raises(NoExpenses):
            reports.submit_report(db, report.id, employee.id)

        db.refresh(report)
        assert report.status == ReportStatus.DRAFT
        assert report.submitted_at is None

    def test_submit_with_only_zero_amounts(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        expense = make_expense(employee, "1.00")
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
        db.get(Expense, expense.id).amount = Decimal("0.00")
        db.commit()

        with pytest.raises(NoExpenses):
            reports.submit_report(db, report.id, employee.id)

    def test_submit_twice(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        expense = make_expense(employee)
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
        reports.submit_report(db, report.id, employee.id)

        with pytest.raises(InvalidTransition):
            reports.submit_report(db, report.id, employee.id)

    def test_second_approve_fails_and_keeps_state(
        self, db, employee, admin, make_report, make_expense
    ):
        report, _ = _approved_report(db, employee, admin, make_report, make_expense)
        approved_at = report.approved_at

        with pytest.raises(InvalidTransition):
            reports.approve_report(db, report.id, admin.id)

        db.refresh(report)
        assert report.status == ReportStatus.APPROVED
        assert report.approved_at == approved_at
        assert len(_report_events(db, report.id, ReportEventType.APPROVED)) == 1

    def test_employee_cannot_approve(self, db, employee, other_employee, make_report, make_expense):
        report = make_report(employee)
        expense = make_expense(employee)
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
        reports.submit_report(db, report.id, employee.id)

        with pytest.raises(Forbidden):
            reports.approve_report(db, report.id, other_employee.id)

        db.refresh(report)
        assert report.status == ReportStatus.SUBMITTED

    def test_reimburse_requires_method(self, db, employee, admin, make_report, make_expense):
        report, _ = _approved_report(db, employee, admin, make_report, make_expense)

        with pytest.raises(ValidationError):
            reports.record_reimbursement(
                db, report.id, RecordReimbursementRequest(reimbursement_method="   "), admin.id
            )

        report = reports.record_reimbursement(
            db,
            report.id,
            RecordReimbursementRequest(reimbursement_method="Bank Transfer", reimbursement_ref="TX-1"),
            admin.id,
        )
        assert report.status == ReportStatus.REIMBURSED
        assert report.reimbursed_at is not None
        assert report.reimbursement_ref == "TX-1"

    def test_reimburse_before_approval(self, db, employee, admin, make_report, make_expense):
        report = make_report(employee)
        expense = make_expense(employee)
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
        reports.submit_report(db, report.id, employee.id)

        with pytest.raises(InvalidTransition):
            reports.record_reimbursement(
                db, report.id, RecordReimbursementRequest(reimbursement_method="Payroll"), admin.id
            )

    def test_full_lifecycle_history_and_notifications(
        self, db, employee, admin, make_report, make_expense
    ):
        report = make_report(employee)
        expense = make_expense(employee, "42.00")
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)

        reports.submit_report(db, report.id, employee.id)
        reports.approve_report(db, report.id, admin.id)
        reports.record_reimbursement(
            db, report.id, RecordReimbursementRequest(reimbursement_method="Payroll"), admin.id
        )

        for event in (
            ReportEventType.CREATED,
            ReportEventType.SUBMITTED,
            ReportEventType.APPROVED,
            ReportEventType.REIMBURSED,
        ):
            assert len(_report_events(db, report.id, event)) == 1

        to_approver = db.query(Notification).filter(Notification.user_id == admin.id).all()
        assert [n.type for n in to_approver] == [NotificationType.REPORT_SUBMITTED]

        to_submitter = db.query(Notification).filter(Notification.user_id == employee.id).all()
        assert sorted(n.type.value for n in to_submitter) == [
            NotificationType.REPORT_APPROVED.value,
            NotificationType.REPORT_REIMBURSED.value,
        ]
        assert all(n.related_report_id == report.id for n in to_submitter)

    def test_reject_notifies_submitter_with_reason(
        self, db, employee, admin, make_report, make_expense
    ):
        report = make_report(employee)
        expense = make_expense(employee)
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
        reports.submit_report(db, report.id, employee.id)

        report = reports.reject_report(db, report.id, admin.id, "Duplicate claim")

        assert report.status == ReportStatus.REJECTED
        assert report.rejection_reason == "Duplicate claim"
        assert len(_report_events(db, report.id, ReportEventType.REJECTED)) == 1
        notes = (
            db.query(Notification)
            .filter(
                Notification.user_id == employee.id,
                Notification.type == NotificationType.REPORT_REJECTED,
            )
            .all()
        )
        assert len(notes) == 1
        assert "Duplicate claim" in notes[0].message

    def test_submit_without_approver_still_commits(
        self, db, other_employee, make_report, make_expense
    ):
        report = make_report(other_employee)
        expense = make_expense(other_employee)
        reports.add_expenses_to_report(db, report.id, [expense.id], other_employee.id)

        report = reports.submit_report(db, report.id, other_employee.id)

        assert report.status == ReportStatus.SUBMITTED
        assert db.query(Notification).count() == 0

    def test_notification_failure_does_not_undo_transition(
        self, db, employee, admin, make_report, make_expense, monkeypatch
    ):
        from app.services import notification_service

        def boom(*args, **kwargs):
            raise RuntimeError("notification store down")

        monkeypatch.setattr(notification_service, "send_report_status_notification", boom)
        report = make_report(employee)
        expense = make_expense(employee)
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)

        report = reports.submit_report(db, report.id, employee.id)

        db.expire_all()
        assert db.get(ExpenseReport, report.id).status == ReportStatus.SUBMITTED


class TestDelete:
    def test_delete_detaches_expenses(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        e1 = make_expense(employee, "10.00")
        e2 = make_expense(employee, "15.00")
        reports.add_expenses_to_report(db, report.id, [e1.id, e2.id], employee.id)
        report_id = report.id

        reports.delete_report(db, report_id, employee.id)

        db.expire_all()
        assert db.get(ExpenseReport, report_id) is None
        for expense_id in (e1.id, e2.id):
            expense = db.get(Expense, expense_id)
            assert expense is not None
            assert expense.report_id is None
            assert expense.status == ExpenseStatus.UNREPORTED
        assert len(_report_events(db, report_id, ReportEventType.DELETED)) == 1

    def test_delete_other_users_report(self, db, employee, other_employee, make_report):
        report = make_report(employee)

        with pytest.raises(NotFoundOrForbidden):
            reports.delete_report(db, report.id, other_employee.id)


class TestBulk:
    def test_bulk_submit_skips_empty_report(self, db, employee, make_report, make_expense):
        full_a = make_report(employee, "A")
        full_b = make_report(employee, "B")
        empty = make_report(employee, "Empty")
        for report in (full_a, full_b):
            expense = make_expense(employee, "25.00")
            reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)

        result = reports.bulk_submit(db, [full_a.id, full_b.id, empty.id], employee.id)

        assert len(result.succeeded) == 2
        assert result.count == 2
        assert len(result.skipped) == 1
        assert result.skipped[0].id == empty.id
        assert result.skipped[0].reason == "no_expenses"

        db.expire_all()
        assert db.get(ExpenseReport, empty.id).status == ReportStatus.DRAFT

    def test_bulk_approve_mixed(self, db, employee, admin, make_report, make_expense):
        submitted = make_report(employee, "Submitted")
        draft = make_report(employee, "Draft")
        for report in (submitted, draft):
            expense = make_expense(employee)
            reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
        reports.submit_report(db, submitted.id, employee.id)

        result = reports.bulk_approve(db, [submitted.id, draft.id], admin.id)

        assert result.succeeded == [submitted.id]
        assert [s.reason for s in result.skipped] == ["invalid_transition"]

    def test_bulk_approve_requires_approver(self, db, employee, make_report):
        report = make_report(employee)

        with pytest.raises(Forbidden):
            reports.bulk_approve(db, [report.id], employee.id)

    def test_bulk_delete_skips_locked(self, db, employee, admin, make_report, make_expense):
        locked, _ = _approved_report(db, employee, admin, make_report, make_expense)
        draft = make_report(employee, "Draft")

        result = reports.bulk_delete_reports(db, [locked.id, draft.id], employee.id)

        assert result.succeeded == [draft.id]
        assert result.skipped[0].reason == "report_locked"

    def test_bulk_reimburse(self, db, employee, admin, make_report, make_expense):
        report, _ = _approved_report(db, employee, admin, make_report, make_expense)

        result = reports.bulk_reimburse(
            db, [report.id], RecordReimbursementRequest(reimbursement_method="Payroll"), admin.id
        )

        assert result.count == 1
        db.expire_all()
        assert db.get(ExpenseReport, report.id).status == ReportStatus.REIMBURSED
