# backend/caja/config.py
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

    # SQLite DB stored next to the backend by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///caja.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Point of sale used when an invoice request does not name one
    CAJA_DEFAULT_PUNTO_VENTA = int(os.environ.get("CAJA_DEFAULT_PUNTO_VENTA", "1"))

    # When on, direct-sale lines not flagged "manual" are priced from the catalog
    CAJA_ENFORCE_CATALOG_PRICES = _env_bool("CAJA_ENFORCE_CATALOG_PRICES")

    CAJA_CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CAJA_CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]

    CAJA_LOG_LEVEL = os.environ.get("CAJA_LOG_LEVEL", "INFO")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
