from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate environment variables at startup.

    Raises RuntimeError listing every invalid variable so the operator can
    fix all problems in one restart cycle.
    """

    from db.config import load_env_files, resolve_database_url

    load_env_files()

    errors: list[str] = []

    database_url = resolve_database_url()
    if not (database_url.startswith("sqlite") or database_url.startswith("postgresql")):
        errors.append("Database URL must be a SQLite or PostgreSQL URL.")

    raw_timeout = os.getenv("SESSION_TIMEOUT_HOURS", "").strip()
    if raw_timeout:
        try:
            if float(raw_timeout) <= 0:
                errors.append("SESSION_TIMEOUT_HOURS must be greater than zero.")
        except ValueError:
            errors.append(f"SESSION_TIMEOUT_HOURS='{raw_timeout}' is not a number.")

    backend = os.getenv("SESSION_STORE_BACKEND", "file").strip().lower()
    if backend not in {"file", "memory"}:
        errors.append(f"SESSION_STORE_BACKEND='{backend}' is not valid. Allowed values: ['file', 'memory'].")

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_database() -> None:
    """
    Confirm the database answers and already carries every ORM table.

    Does NOT auto-migrate: a missing table aborts startup until
    `alembic upgrade head` has been run.
    """
    from sqlalchemy import inspect as sa_inspect
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    import db.models  # noqa: F401 registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    log = logging.getLogger(__name__)
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
            present = set(sa_inspect(connection).get_table_names())
    except SQLAlchemyError as exc:
        raise RuntimeError("Database unavailable.") from exc
    log.info("Database connectivity confirmed")

    missing = sorted(set(Base.metadata.tables) - present)
    if missing:
        log.critical(
            "Schema mismatch: %d table(s) absent from the database: %s. "
            "Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(missing),
        )
        raise RuntimeError(f"Schema mismatch: missing tables {', '.join(missing)}.")
    log.info("Database schema validated")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Check the database, purge stale uploads and run the backup scheduler for the app's lifetime."""
    log = logging.getLogger(__name__)
    _check_database()

    from app.config import get_backup_settings
    from app.scheduler.backup_scheduler import BackupScheduler
    from app.services.backup_service import get_database_backup_service
    from app.services.import_session_service import get_import_session_service

    purged = get_import_session_service().store.purge_expired()
    log.info("Purged %d expired upload sessions at startup", purged)

    settings = get_backup_settings()
    scheduler: BackupScheduler | None = None
    if settings.scheduler_enabled:
        scheduler = BackupScheduler(
            get_database_backup_service(),
            settings.scheduler_state_path,
            hour=settings.scheduler_hour,
        )
        scheduler.start()
        log.info("Backup scheduler started: %s", scheduler.status())
    application.state.backup_scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()
            log.info("Backup scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Media Sufficiency Import API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import backups_router, media_sufficiency_router

    application.include_router(media_sufficiency_router)
    application.include_router(backups_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
