import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.exceptions import ExpenseAppError
from app.db.session import engine
from app.db.base import Base

from app.api.auth import router as auth_router
from app.api.expenses import router as expenses_router
from app.api.expense_reports import router as expense_reports_router
from app.api.admin_reports import router as admin_reports_router
from app.api.users import router as users_router
from app.api.dashboard import router as dashboard_router
from app.api.notifications import router as notifications_router
from app.api.receipts import router as receipts_router
from app.api.reference_data import router as reference_data_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ExpenseAppError)
def expense_app_error_handler(request: Request, exc: ExpenseAppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code},
    )


# DEV ONLY
if settings.ENV == "development":
    Base.metadata.create_all(bind=engine)

# ROUTERS
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(expenses_router, prefix="/api/expenses", tags=["expenses"])
app.include_router(expense_reports_router, prefix="/api/expense-reports", tags=["expense-reports"])
app.include_router(admin_reports_router, prefix="/api/admin/reports", tags=["admin"])
app.include_router(users_router, prefix="/api/admin/users", tags=["admin"])
app.include_router(dashboard_router, prefix="/api", tags=["dashboard"])
app.include_router(notifications_router, prefix="/api", tags=["notifications"])
app.include_router(receipts_router, prefix="/api/receipts", tags=["receipts"])
app.include_router(reference_data_router, prefix="/api", tags=["reference-data"])

logger.info("%s started (env=%s)", settings.APP_NAME, settings.ENV)


@app.get("/api/health")
def health():
    return {"status": "ok"}
