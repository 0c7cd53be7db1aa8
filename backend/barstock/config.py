# backend/barstock/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/barstock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///barstock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bulk stock sync (one procedure call per batch)
    BULK_MAX_BATCH_SIZE = _env_int("BULK_MAX_BATCH_SIZE", 1000)
    BULK_MAX_WORKERS = _env_int("BULK_MAX_WORKERS", 4)
    BULK_RPC_TIMEOUT_SECONDS = _env_int("BULK_RPC_TIMEOUT_SECONDS", 30)

    # Last good catalog snapshot, used when the store cannot be reached
    LOCAL_CACHE_PATH = os.environ.get("LOCAL_CACHE_PATH", "instance/catalog_cache.json")

    HISTORY_DEFAULT_LIMIT = _env_int("HISTORY_DEFAULT_LIMIT", 100)
    PRODUCT_HISTORY_DEFAULT_LIMIT = _env_int("PRODUCT_HISTORY_DEFAULT_LIMIT", 50)

    VENUE_NAME = os.environ.get("VENUE_NAME", "Bar")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    }
