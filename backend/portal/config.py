# backend/portal/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/portal.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///portal.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Route approvals to active admins when a department has no approver
    APPROVER_FALLBACK_TO_ADMIN = _env_bool("APPROVER_FALLBACK_TO_ADMIN", True)

    # Random order numbers tried before giving up (BEST-YYYYMMDD-NNNN)
    ORDER_NUMBER_ATTEMPTS = int(os.environ.get("ORDER_NUMBER_ATTEMPTS", "5"))

    # Retries for optimistic-lock / lock-contention failures
    TRANSITION_RETRY_ATTEMPTS = int(os.environ.get("TRANSITION_RETRY_ATTEMPTS", "3"))

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))

    CLIENT_LOG_BUFFER_SIZE = int(os.environ.get("CLIENT_LOG_BUFFER_SIZE", "1000"))
