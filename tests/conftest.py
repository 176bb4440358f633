"""Pytest fixtures for the expense report API tests."""

import os

# Must be set before the app modules read their settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["SEND_EMAILS"] = "false"
os.environ["ALLOWED_EMAIL_DOMAIN"] = ""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.roles import ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER
from app.core.security import create_access_token, hash_password
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.expense import ExpenseCategory
from app.models.user import User
from app.schemas.expense import ExpenseCreate
from app.schemas.expense_report import ExpenseReportCreate
from app.services import expense_report_service, expense_service


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def receipts_dir(tmp_path, monkeypatch):
    path = tmp_path / "receipts"
    monkeypatch.setattr(settings, "RECEIPTS_DIR", str(path))
    return path


def _make_user(db, email, name, role, approver=None):
    user = User(
        email=email,
        name=name,
        password_hash=hash_password("password123"),
        role=role,
        approver_id=approver.id if approver else None,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return _make_user(db, "admin@example.com", "Ada Admin", ROLE_ADMIN)


@pytest.fixture
def manager(db):
    return _make_user(db, "manager@example.com", "Max Manager", ROLE_MANAGER)


@pytest.fixture
def employee(db, admin):
    return _make_user(db, "employee@example.com", "Eve Employee", ROLE_EMPLOYEE, approver=admin)


@pytest.fixture
def other_employee(db):
    return _make_user(db, "other@example.com", "Oscar Other", ROLE_EMPLOYEE)


@pytest.fixture
def make_expense(db):
    """Create an unreported expense through the service layer."""

    def _make(owner, amount="100.00", claim_reimbursement=True, **overrides):
        fields = dict(
            amount=Decimal(amount),
            date=date(2024, 3, 15),
            merchant="Acme Travel",
            category=ExpenseCategory.TRAVEL,
            description="Client visit",
            claim_reimbursement=claim_reimbursement,
        )
        fields.update(overrides)
        return expense_service.create_expense(db, owner.id, ExpenseCreate(**fields))

    return _make


@pytest.fixture
def make_report(db):
    def _make(owner, title="March travel"):
        return expense_report_service.create_report(
            db, owner.id, ExpenseReportCreate(title=title)
        )

    return _make


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(user):
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}
