# backend/backoffice/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Fallback when no active wholesale_threshold business rule exists (MXN)
    WHOLESALE_THRESHOLD_DEFAULT = int(os.environ.get("WHOLESALE_THRESHOLD_DEFAULT", "3000"))

    # Refuse a deduction whose per-location split exceeds a location's stock
    # instead of clamping that location at zero.
    STRICT_LOCATION_STOCK = _env_bool("STRICT_LOCATION_STOCK", False)

    ORDER_NUMBER_START = int(os.environ.get("ORDER_NUMBER_START", "500"))
    WEB_ORDER_POLL_SECONDS = int(os.environ.get("WEB_ORDER_POLL_SECONDS", "30"))
    DEFAULT_MIN_STOCK_ALERT = int(os.environ.get("DEFAULT_MIN_STOCK_ALERT", "5"))

    # Till/back-office UI dev servers allowed to call the API from a browser
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]
