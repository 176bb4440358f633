# app/db/base.py
# Import every model so Base.metadata knows all tables before create_all

from app.db.base_class import Base  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.expense_report import ExpenseReport  # noqa: F401
from app.models.expense import Expense  # noqa: F401
from app.models.history import ReportHistory, ExpenseHistory  # noqa: F401
from app.models.notification import Notification  # noqa: F401
