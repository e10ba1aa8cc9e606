# backend/shiftguard/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shiftguard.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shiftguard.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Hours / overtime
    STANDARD_SHIFT_HOURS = float(os.environ.get("STANDARD_SHIFT_HOURS", "8"))
    MAX_DAILY_OVERTIME_HOURS = float(os.environ.get("MAX_DAILY_OVERTIME_HOURS", "4"))
    MAX_WEEKLY_OVERTIME_HOURS = float(os.environ.get("MAX_WEEKLY_OVERTIME_HOURS", "12"))

    # Attendance
    LATE_GRACE_MINUTES = int(os.environ.get("LATE_GRACE_MINUTES", "7"))
    LATE_SEVERE_MINUTES = int(os.environ.get("LATE_SEVERE_MINUTES", "30"))
    MISSED_CLOCK_OUT_HOURS = float(os.environ.get("MISSED_CLOCK_OUT_HOURS", "16"))

    # Breaks
    REQUIRED_BREAK_AFTER_HOURS = float(os.environ.get("REQUIRED_BREAK_AFTER_HOURS", "6"))
    REQUIRED_BREAK_MINUTES = int(os.environ.get("REQUIRED_BREAK_MINUTES", "30"))
    MIN_BREAK_MINUTES = int(os.environ.get("MIN_BREAK_MINUTES", "10"))
    MAX_BREAK_MINUTES = int(os.environ.get("MAX_BREAK_MINUTES", "60"))

    # Cash handling (decimal currency units)
    CASH_DISCREPANCY_THRESHOLD = float(os.environ.get("CASH_DISCREPANCY_THRESHOLD", "5.00"))
    CASH_VARIANCE_CRITICAL_THRESHOLD = float(os.environ.get("CASH_VARIANCE_CRITICAL_THRESHOLD", "50.00"))
    MAX_STARTING_CASH = float(os.environ.get("MAX_STARTING_CASH", "100000.00"))

    # Transactions
    REFUND_APPROVAL_LIMIT = float(os.environ.get("REFUND_APPROVAL_LIMIT", "50.00"))
    SUSPICIOUS_DISCOUNT_PERCENT = int(os.environ.get("SUSPICIOUS_DISCOUNT_PERCENT", "50"))

    # Users without an explicit override or role default get this
    SHIFT_REQUIRED_DEFAULT = _env_bool("SHIFT_REQUIRED_DEFAULT", True)


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "WARNING"
