# app/core/constants.py

EXPENSE_CATEGORIES = [
    "TRAVEL",
    "MEALS",
    "ACCOMMODATION",
    "TRANSPORTATION",
    "OFFICE_SUPPLIES",
    "ENTERTAINMENT",
    "SOFTWARE",
    "TRAINING",
    "OTHER",
]

REIMBURSEMENT_METHODS = [
    "Bank Transfer",
    "Payroll",
    "Check",
    "Cash",
    "Company Card Credit",
]

RECEIPT_EXTENSIONS = ["jpg", "jpeg", "png", "pdf"]

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Arbitrary lower bound used for the "all time" dashboard window
ALL_TIME_START_YEAR = 2000
