"""Tests for the expense manager."""

from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundOrForbidden, ReportLocked
from app.models.expense import Expense, ExpenseCategory, ExpenseStatus
from app.models.expense_report import ExpenseReport
from app.models.history import ExpenseEventType, ExpenseHistory
from app.schemas.expense import ExpenseCreate, ExpenseFilter, ExpenseUpdate
from app.services import expense_report_service as reports
from app.services import expense_service


def _events(db, expense_id):
    return [
        h.event_type
        for h in db.query(ExpenseHistory)
        .filter(ExpenseHistory.expense_id == expense_id)
        .order_by(ExpenseHistory.event_date)
        .all()
    ]


class TestCreate:
    def test_create_unreported(self, db, employee, make_expense):
        expense = make_expense(employee, "19.99")

        assert expense.status == ExpenseStatus.UNREPORTED
        assert expense.report_id is None
        assert expense.amount == Decimal("19.99")
        assert _events(db, expense.id) == [ExpenseEventType.CREATED]

    def test_create_straight_into_report(self, db, employee, make_report):
        report = make_report(employee)
        payload = ExpenseCreate(
            amount=Decimal("30.00"),
            date=date(2024, 4, 2),
            merchant="Cafe",
            category=ExpenseCategory.MEALS,
            description="Team lunch",
            report_id=report.id,
        )

        expense = expense_service.create_expense(db, employee.id, payload)

        assert expense.status == ExpenseStatus.REPORTED
        assert expense.report_id == report.id
        db.refresh(report)
        assert report.total_amount == Decimal("30.00")
        assert ExpenseEventType.ADDED_TO_REPORT in _events(db, expense.id)

    def test_create_into_foreign_report_rolls_back(
        self, db, employee, other_employee, make_report
    ):
        report = make_report(other_employee)
        payload = ExpenseCreate(
            amount=Decimal("30.00"),
            date=date(2024, 4, 2),
            merchant="Cafe",
            category=ExpenseCategory.MEALS,
            description="Team lunch",
            report_id=report.id,
        )

        with pytest.raises(NotFoundOrForbidden):
            expense_service.create_expense(db, employee.id, payload)

        assert db.query(Expense).count() == 0


class TestUpdate:
    def test_update_recalculates_parent_total(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        expense = make_expense(employee, "10.00")
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)

        expense_service.update_expense(
            db, expense.id, employee.id, ExpenseUpdate(amount=Decimal("12.50"))
        )

        db.refresh(report)
        assert report.total_amount == Decimal("12.50")
        assert _events(db, expense.id)[-1] == ExpenseEventType.UPDATED

    def test_update_ignores_null_required_fields(self, db, employee, make_expense):
        expense = make_expense(employee)

        expense = expense_service.update_expense(
            db, expense.id, employee.id, ExpenseUpdate(merchant=None, notes="Taxi")
        )

        assert expense.merchant == "Acme Travel"
        assert expense.notes == "Taxi"

    def test_update_in_locked_report(self, db, employee, admin, make_report, make_expense):
        report = make_report(employee)
        expense = make_expense(employee, "10.00")
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
        reports.submit_report(db, report.id, employee.id)
        reports.approve_report(db, report.id, admin.id)

        with pytest.raises(ReportLocked):
            expense_service.update_expense(
                db, expense.id, employee.id, ExpenseUpdate(amount=Decimal("99.00"))
            )

        db.expire_all()
        assert db.get(Expense, expense.id).amount == Decimal("10.00")

    def test_update_other_users_expense(self, db, employee, other_employee, make_expense):
        expense = make_expense(employee)

        with pytest.raises(NotFoundOrForbidden):
            expense_service.update_expense(
                db, expense.id, other_employee.id, ExpenseUpdate(notes="mine now")
            )


class TestDelete:
    def test_delete_recalculates_and_keeps_history(
        self, db, employee, make_report, make_expense
    ):
        report = make_report(employee)
        keep = make_expense(employee, "5.00")
        drop = make_expense(employee, "7.00")
        reports.add_expenses_to_report(db, report.id, [keep.id, drop.id], employee.id)
        drop_id = drop.id

        expense_service.delete_expense(db, drop_id, employee.id)

        db.expire_all()
        assert db.get(Expense, drop_id) is None
        assert db.get(ExpenseReport, report.id).total_amount == Decimal("5.00")
        assert _events(db, drop_id)[-1] == ExpenseEventType.DELETED

    def test_delete_removes_receipt_files(self, db, employee, make_expense, receipts_dir):
        receipts_dir.mkdir(parents=True, exist_ok=True)
        (receipts_dir / "abc.pdf").write_bytes(b"%PDF")
        expense = make_expense(employee, receipt_urls=["/api/receipts/abc.pdf"])

        expense_service.delete_expense(db, expense.id, employee.id)

        assert not (receipts_dir / "abc.pdf").exists()

    def test_bulk_delete_reports_missing(self, db, employee, other_employee, make_expense):
        mine = make_expense(employee)
        theirs = make_expense(other_employee)

        result = expense_service.bulk_delete_expenses(db, [mine.id, theirs.id], employee.id)

        assert result.succeeded == [mine.id]
        assert result.skipped[0].id == theirs.id
        assert result.skipped[0].reason == "not_found"


class TestQueries:
    def test_list_filters_and_pagination(self, db, employee, other_employee, make_expense):
        make_expense(employee, "10.00", merchant="Uber", category=ExpenseCategory.TRANSPORTATION)
        make_expense(employee, "60.00", merchant="Hilton", category=ExpenseCategory.ACCOMMODATION)
        make_expense(employee, "25.00", merchant="Uber Eats", category=ExpenseCategory.MEALS)
        make_expense(other_employee, "99.00", merchant="Uber")

        items, total = expense_service.list_expenses(
            db, employee.id, ExpenseFilter(search="uber")
        )
        assert total == 2
        assert {e.merchant for e in items} == {"Uber", "Uber Eats"}

        items, total = expense_service.list_expenses(
            db, employee.id, ExpenseFilter(min_amount=Decimal("20"), max_amount=Decimal("50"))
        )
        assert [e.merchant for e in items] == ["Uber Eats"]

        items, total = expense_service.list_expenses(db, employee.id, None, page=2, page_size=2)
        assert total == 3
        assert len(items) == 1

    def test_stats(self, db, employee, make_report, make_expense):
        report = make_report(employee)
        reported = make_expense(employee, "40.00")
        make_expense(employee, "2.50")
        reports.add_expenses_to_report(db, report.id, [reported.id], employee.id)

        stats = expense_service.expense_stats(db, employee.id)

        assert stats["total_count"] == 2
        assert stats["total_amount"] == 42.5
        assert stats["by_status"]["REPORTED"] == {"count": 1, "total_amount": 40.0}
        assert stats["by_status"]["UNREPORTED"] == {"count": 1, "total_amount": 2.5}

    def test_categories(self):
        assert "TRAVEL" in expense_service.list_categories()
        assert len(expense_service.list_categories()) == len(ExpenseCategory)


class TestReceiptCleanup:
    def test_storage_failure_does_not_block_delete(
        self, db, employee, make_report, make_expense, monkeypatch
    ):
        from app.services import receipt_storage

        def boom(url):
            raise OSError("disk unavailable")

        monkeypatch.setattr(receipt_storage, "delete_receipt", boom)
        report = make_report(employee)
        keep = make_expense(employee, "5.00")
        drop = make_expense(employee, "7.00", receipt_urls=["/api/receipts/gone.png"])
        reports.add_expenses_to_report(db, report.id, [keep.id, drop.id], employee.id)
        drop_id = drop.id

        expense_service.delete_expense(db, drop_id, employee.id)

        db.expire_all()
        assert db.get(Expense, drop_id) is None
        assert db.get(ExpenseReport, report.id).total_amount == Decimal("5.00")

    def test_remove_receipt_used_by_another_user(
        self, db, employee, other_employee, make_expense, receipts_dir
    ):
        receipts_dir.mkdir(parents=True, exist_ok=True)
        (receipts_dir / "shared.png").write_bytes(b"png")
        expense = make_expense(employee, receipt_urls=["/api/receipts/shared.png"])

        with pytest.raises(NotFoundOrForbidden):
            expense_service.remove_receipt(db, "shared.png", other_employee.id)

        assert (receipts_dir / "shared.png").exists()
        db.refresh(expense)
        assert expense.receipt_urls == ["/api/receipts/shared.png"]

    def test_remove_receipt_on_locked_report(
        self, db, employee, admin, make_report, make_expense, receipts_dir
    ):
        receipts_dir.mkdir(parents=True, exist_ok=True)
        (receipts_dir / "locked.pdf").write_bytes(b"%PDF")
        report = make_report(employee)
        expense = make_expense(employee, receipt_urls=["/api/receipts/locked.pdf"])
        reports.add_expenses_to_report(db, report.id, [expense.id], employee.id)
        reports.submit_report(db, report.id, employee.id)
        reports.approve_report(db, report.id, admin.id)

        with pytest.raises(ReportLocked):
            expense_service.remove_receipt(db, "/api/receipts/locked.pdf", employee.id)

        assert (receipts_dir / "locked.pdf").exists()


class TestBulkDelete:
    def test_unexpected_error_is_skipped(self, db, employee, make_expense, monkeypatch):
        first = make_expense(employee)
        second = make_expense(employee)
        real_delete = expense_service.delete_expense

        def flaky_delete(db, expense_id, owner_id):
            if expense_id == first.id:
                raise RuntimeError("connection reset")
            return real_delete(db, expense_id, owner_id)

        monkeypatch.setattr(expense_service, "delete_expense", flaky_delete)

        result = expense_service.bulk_delete_expenses(db, [first.id, second.id], employee.id)

        assert result.succeeded == [second.id]
        assert result.skipped[0].id == first.id
        assert result.skipped[0].reason == "error"
        assert db.get(Expense, first.id) is not None
