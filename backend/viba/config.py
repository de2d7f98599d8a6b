# backend/viba/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Signs the PreAuth/Auth session cookies
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/viba.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///viba.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session stages
    PRE_AUTH_TTL_SECONDS = int(os.environ.get("PRE_AUTH_TTL_SECONDS", 15 * 60))
    AUTH_TTL_SECONDS = int(os.environ.get("AUTH_TTL_SECONDS", 4 * 60 * 60))

    # Cookies
    COOKIE_SECURE = _env_bool("COOKIE_SECURE", os.environ.get("FLASK_ENV") == "production")
    COOKIE_SAMESITE = os.environ.get("COOKIE_SAMESITE", "Lax")

    # Two-factor
    TOTP_ISSUER = os.environ.get("TOTP_ISSUER", "ViBa")

    # Throttling
    LOGIN_MAX_FAILED_ATTEMPTS = int(os.environ.get("LOGIN_MAX_FAILED_ATTEMPTS", 10))
    TOTP_MAX_FAILED_ATTEMPTS = int(os.environ.get("TOTP_MAX_FAILED_ATTEMPTS", 5))
    LOCKOUT_MINUTES = int(os.environ.get("LOCKOUT_MINUTES", 15))

    # Upper bound for one sell/update transaction
    SALE_TIMEOUT_SECONDS = float(os.environ.get("SALE_TIMEOUT_SECONDS", 10))

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
