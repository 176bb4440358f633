# app/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    APP_NAME: str = os.getenv("APP_NAME", "Expense Report API")
    ENV: str = os.getenv("ENV", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # DB
    # Full SQLAlchemy URL wins over the individual parts when set
    DATABASE_URL: str = os.getenv("DATABASE_URL")
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: str = os.getenv("DB_PORT", "5432")
    DB_NAME: str = os.getenv("DB_NAME", "expenses")
    DB_USER: str = os.getenv("DB_USER", "postgres")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
    DB_SSLMODE: str = os.getenv("DB_SSLMODE", "require")

    # AUTH
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))
    ALLOWED_EMAIL_DOMAIN: str = os.getenv("ALLOWED_EMAIL_DOMAIN", "")

    # FRONTEND
    FRONTEND_BASE_URL: str = os.getenv(
        "FRONTEND_BASE_URL",
        "http://localhost:5173"
    )
    CORS_ORIGINS: list = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
        if o.strip()
    ]

    # SMTP (relay)
    SEND_EMAILS: bool = _as_bool(os.getenv("SEND_EMAILS", "true"))
    SMTP_HOST: str = os.getenv("SMTP_HOST")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "25"))
    SMTP_FROM: str = os.getenv("SMTP_FROM", "no-reply@localhost")
    SMTP_USER: str = os.getenv("SMTP_USER")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD")

    # RECEIPTS
    RECEIPTS_DIR: str = os.getenv("RECEIPTS_DIR", "uploads/receipts")
    MAX_RECEIPT_BYTES: int = int(os.getenv("MAX_RECEIPT_BYTES", str(10 * 1024 * 1024)))

    # DASHBOARD
    STALE_SUBMISSION_DAYS: int = int(os.getenv("STALE_SUBMISSION_DAYS", "7"))


settings = Settings()
