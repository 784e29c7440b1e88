"""
db/session.py

Engine and session factory for the game-plan database.

SQLite (the default local store, also what the full-database backup copies)
and PostgreSQL are supported. The engine is built on first use so importing
models or routers never opens a connection.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from functools import lru_cache
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import is_sqlite_url, resolve_database_url

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw.lstrip("-").isdigit() else default


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """Turn on FOREIGN KEY enforcement for every new SQLite connection."""

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(database_url: str | None = None) -> Engine:
    url = database_url or resolve_database_url()
    options: dict[str, Any] = {"echo": _env_flag("SQL_ECHO")}

    if is_sqlite_url(url):
        engine = create_engine(url, connect_args={"check_same_thread": False}, **options)
        enable_sqlite_foreign_keys(engine)
        return engine

    if not url.startswith("postgresql"):
        raise RuntimeError(f"Unsupported database URL scheme: {url.split(':', 1)[0]}")

    options.update(
        pool_pre_ping=True,
        pool_recycle=_env_int("DB_POOL_RECYCLE", 1800),
        pool_size=_env_int("DB_POOL_SIZE", 5),
        max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
    )
    return create_engine(url, **options)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def _session_factory() -> sessionmaker:
    return sessionmaker(
        bind=get_engine(),
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )


def SessionLocal() -> Session:
    """New session bound to the shared engine."""
    return _session_factory()()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
