"""
app/config.py

Environment-driven settings for import validation, auto-create policy,
upload sessions and backups.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, TypeVar

from db.config import load_env_files

_T = TypeVar("_T")

DEFAULT_CAMPAIGN_ARCHETYPES: tuple[str, ...] = (
    "Innovation",
    "Base Business (Maintenance)",
    "Range Extension",
)


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _raw_env(name: str) -> str | None:
    """
    Stripped value of an environment variable; blank counts as unset.
    """

    _load_env_once()
    value = (os.getenv(name) or "").strip()
    return value or None


def _get_bool_env(name: str, default: bool) -> bool:
    raw_value = _raw_env(name)
    if raw_value is None:
        return default
    return raw_value.lower() in {"1", "true", "yes", "on"}


def _get_number_env(name: str, default: _T, parse: Callable[[str], _T]) -> _T:
    raw_value = _raw_env(name)
    if raw_value is None:
        return default
    try:
        return parse(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    return _raw_env(name) or default


def _get_list_env(name: str) -> tuple[str, ...] | None:
    """
    Read a comma-separated list. Unset or blank returns None.
    """

    raw_value = _raw_env(name)
    if raw_value is None:
        return None
    return tuple(token.strip() for token in raw_value.split(",") if token.strip())


@dataclass(frozen=True)
class ImportValidationSettings:
    """
    Runtime settings for CSV import validation.
    """

    extra_required_fields: tuple[str, ...] = ()
    enforce_cycle_year: bool = True
    budget_sum_tolerance: float = 1.0
    max_upload_bytes: int = 10 * 1024 * 1024
    campaign_archetypes: tuple[str, ...] = DEFAULT_CAMPAIGN_ARCHETYPES


@dataclass(frozen=True)
class AutoCreateSettings:
    """
    Policy inputs deciding whether unknown Campaigns/Ranges may be created.
    """

    enabled: bool = True
    entity_types: tuple[str, ...] = ("Campaign", "Range")
    warn_on_pending: bool = True
    closed_cycles: tuple[str, ...] = ()
    open_cycles: tuple[str, ...] | None = None
    created_by: str = "import_auto"


@dataclass(frozen=True)
class SessionStoreSettings:
    """
    Upload session persistence settings.
    """

    backend: str = "file"
    directory: str = "data/sessions"
    timeout_hours: float = 6.0


@dataclass(frozen=True)
class BackupSettings:
    """
    Full-database and scoped game-plan backup settings.
    """

    database_backup_dir: str = "backups"
    game_plan_backup_dir: str = "backups/game-plans"
    max_database_backups: int = 30
    scheduler_enabled: bool = True
    scheduler_hour: int = 2
    scheduler_state_path: str = "data/scheduler-state.json"


@lru_cache(maxsize=1)
def get_import_validation_settings() -> ImportValidationSettings:
    """
    Return cached import validation settings from environment variables.
    """

    return ImportValidationSettings(
        extra_required_fields=_get_list_env("IMPORT_EXTRA_REQUIRED_FIELDS") or (),
        enforce_cycle_year=_get_bool_env("IMPORT_ENFORCE_CYCLE_YEAR", True),
        budget_sum_tolerance=max(0.0, _get_number_env("IMPORT_BUDGET_SUM_TOLERANCE", 1.0, float)),
        max_upload_bytes=max(1, _get_number_env("IMPORT_MAX_UPLOAD_BYTES", 10 * 1024 * 1024, int)),
        campaign_archetypes=_get_list_env("IMPORT_CAMPAIGN_ARCHETYPES") or DEFAULT_CAMPAIGN_ARCHETYPES,
    )


@lru_cache(maxsize=1)
def get_auto_create_settings() -> AutoCreateSettings:
    """
    Return cached auto-create policy settings from environment variables.
    """

    return AutoCreateSettings(
        enabled=_get_bool_env("AUTO_CREATE_ENABLED", True),
        entity_types=_get_list_env("AUTO_CREATE_ENTITY_TYPES") or ("Campaign", "Range"),
        warn_on_pending=_get_bool_env("AUTO_CREATE_WARN_ON_PENDING", True),
        closed_cycles=_get_list_env("AUTO_CREATE_CLOSED_CYCLES") or (),
        open_cycles=_get_list_env("AUTO_CREATE_OPEN_CYCLES"),
        created_by=_get_str_env("AUTO_CREATE_CREATED_BY", "import_auto"),
    )


@lru_cache(maxsize=1)
def get_session_store_settings() -> SessionStoreSettings:
    """
    Return cached upload session store settings.
    """

    return SessionStoreSettings(
        backend=_get_str_env("SESSION_STORE_BACKEND", "file").lower(),
        directory=_get_str_env("SESSION_STORE_DIR", "data/sessions"),
        timeout_hours=max(0.01, _get_number_env("SESSION_TIMEOUT_HOURS", 6.0, float)),
    )


@lru_cache(maxsize=1)
def get_backup_settings() -> BackupSettings:
    """
    Return cached backup and scheduler settings.
    """

    hour = _get_number_env("BACKUP_SCHEDULER_HOUR", 2, int)
    return BackupSettings(
        database_backup_dir=_get_str_env("DATABASE_BACKUP_DIR", "backups"),
        game_plan_backup_dir=_get_str_env("GAME_PLAN_BACKUP_DIR", "backups/game-plans"),
        max_database_backups=max(1, _get_number_env("MAX_DATABASE_BACKUPS", 30, int)),
        scheduler_enabled=_get_bool_env("BACKUP_SCHEDULER_ENABLED", True),
        scheduler_hour=hour if 0 <= hour <= 23 else 2,
        scheduler_state_path=_get_str_env("BACKUP_SCHEDULER_STATE_PATH", "data/scheduler-state.json"),
    )
