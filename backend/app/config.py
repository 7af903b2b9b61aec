# backend/app/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ unless DATABASE_URL points at PostgreSQL
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///sales_management.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = (
        {"pool_size": 20, "pool_pre_ping": True}
        if SQLALCHEMY_DATABASE_URI.startswith("postgresql")
        else {}
    )

    # Tokens
    JWT_SECRET = os.environ.get("JWT_SECRET", SECRET_KEY)
    JWT_REFRESH_SECRET = os.environ.get("JWT_REFRESH_SECRET", JWT_SECRET + "refresh")
    JWT_ACCESS_EXPIRES_HOURS = _env_int("JWT_ACCESS_EXPIRES_HOURS", 24)
    JWT_REFRESH_EXPIRES_DAYS = _env_int("JWT_REFRESH_EXPIRES_DAYS", 7)
    JWT_ISSUER = os.environ.get("JWT_ISSUER", "sales-management-system")

    CORS_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if o.strip()
    ]

    APP_VERSION = os.environ.get("APP_VERSION", "1.0.0")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Statements slower than this are logged when SQL_ECHO_DURATIONS is on
    SQL_ECHO_DURATIONS = os.environ.get("SQL_ECHO_DURATIONS", "0") == "1"
    SLOW_QUERY_MS = _env_int("SLOW_QUERY_MS", 200)

    # bcrypt cost factor; tests lower it
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 100
