# backend/laundrypos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # System of record. SQLite by default, any SQLAlchemy URL in production.
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///laundrypos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Read cache: freshness window and storage backend ("memory" or "sql")
    CACHE_TTL_SECONDS = float(os.environ.get("CACHE_TTL_SECONDS", "300"))
    CACHE_BACKEND = os.environ.get("CACHE_BACKEND", "memory")
    CACHE_DATABASE_URL = os.environ.get("CACHE_DATABASE_URL", "sqlite:///laundrypos-cache.sqlite3")

    # Invoice commit retry: attempts and base delay (1s, 2s, ...)
    INVOICE_COMMIT_ATTEMPTS = int(os.environ.get("INVOICE_COMMIT_ATTEMPTS", "3"))
    INVOICE_COMMIT_BACKOFF_SECONDS = float(os.environ.get("INVOICE_COMMIT_BACKOFF_SECONDS", "1.0"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    CACHE_BACKEND = "memory"
    INVOICE_COMMIT_BACKOFF_SECONDS = 0.0
    LOG_LEVEL = "WARNING"
