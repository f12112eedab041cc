# backend/storefront/config.py
from __future__ import annotations
import os
from datetime import timedelta


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Session cookie carries the persistent cart identity
    SESSION_COOKIE_NAME = "tmh.session"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.environ.get("FLASK_ENV") == "production"
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)

    # "sql" uses DATABASE_URL; "memory" keeps everything in one in-process SQLite connection
    STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "sql")

    # SQLite DB stored in backend/instance/storefront.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storefront.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared secret expected in the Admin-Password header
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "TMH2025!Admin")

    CORS_ALLOWED_ORIGINS = {
        "https://themosthigh.co.za",
        "http://themosthigh.co.za",
        "https://www.themosthigh.co.za",
        "http://www.themosthigh.co.za",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    }

    PAYMENT_CURRENCY = os.environ.get("PAYMENT_CURRENCY", "zar")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


MEMORY_DATABASE_URI = "sqlite://"


def apply_storage_backend(config: dict) -> None:
    """
    Point SQLAlchemy at the configured storage backend.

    Both backends share the same models and services; "memory" only swaps the
    engine for a single shared in-process connection.
    """
    backend = config.get("STORAGE_BACKEND", "sql")
    if backend == "memory":
        from sqlalchemy.pool import StaticPool

        config["SQLALCHEMY_DATABASE_URI"] = MEMORY_DATABASE_URI
        config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    elif backend != "sql":
        raise ValueError(f"Unknown STORAGE_BACKEND '{backend}'. Must be one of: memory, sql")
