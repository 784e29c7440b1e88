"""
app/services/backup_service.py

Backup and restore guards for destructive operations.

Two kinds of backup exist:

  * full-database file copies of the SQLite database, kept for a fixed
    number of days and taken daily by the backup scheduler;
  * scoped game-plan dumps (country + financial cycle [+ business unit])
    written as JSON before an import replaces that scope.

A full-database backup reports failure through BackupResult and never
raises. A scoped backup raises GamePlanBackupError so destructive callers
can refuse to continue.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from dataclasses import dataclass
from datetime import date, datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_backup_settings
from app.domain.results import BatchReport, ItemResult
from app.logging_utils import log_event
from app.repositories.game_plan_repository import GamePlanRepository
from app.repositories.master_data_repository import MasterDataRepository
from db.config import resolve_database_url, sqlite_database_path
from db.models import (
    BusinessUnit,
    Campaign,
    Category,
    Country,
    FinancialCycle,
    GamePlan,
    MediaSubType,
    PMType,
    Range,
    SubRegion,
)

logger = logging.getLogger(__name__)

DATABASE_BACKUP_PREFIX = "golden_rules_backup_"
DATABASE_BACKUP_SUFFIX = ".db"
GAME_PLAN_BACKUP_PREFIX = "game-plans-backup-"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GamePlanBackupError(RuntimeError):
    """
    Raised when a scoped game-plan backup cannot be written or read.
    """


# ---------------------------------------------------------------------------
# Full-database backups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BackupResult:
    success: bool
    file_path: str | None = None
    error: str | None = None

    @property
    def file_name(self) -> str | None:
        return Path(self.file_path).name if self.file_path else None


@dataclass(frozen=True)
class BackupFileInfo:
    name: str
    path: str
    size_bytes: int
    modified_at: datetime


class DatabaseBackupService:
    """
    Copies the SQLite database file into the backup directory and prunes
    old copies by modification time.
    """

    def __init__(
        self,
        *,
        database_path: Path | None,
        backup_dir: str | Path,
        max_backups: int = 30,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._database_path = database_path
        self._backup_dir = Path(backup_dir)
        self._max_backups = max(1, max_backups)
        self._clock = clock

    def create_backup(self) -> BackupResult:
        """
        Copy the database to ``golden_rules_backup_{YYYY-MM-DD}.db``.

        Failures are returned, not raised.
        """

        if self._database_path is None:
            return BackupResult(success=False, error="Full database backup requires a SQLite database.")
        if not self._database_path.exists():
            return BackupResult(success=False, error="Database file not found")

        stamp = self._clock().strftime("%Y-%m-%d")
        target = self._backup_dir / f"{DATABASE_BACKUP_PREFIX}{stamp}{DATABASE_BACKUP_SUFFIX}"
        try:
            self._backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self._database_path, target)
        except OSError as exc:
            log_event(logger, logging.ERROR, "database_backup_failed", error=str(exc))
            return BackupResult(success=False, error=str(exc))

        log_event(logger, logging.INFO, "database_backup_created", file=target)
        self.prune()
        return BackupResult(success=True, file_path=str(target))

    def prune(self) -> int:
        """
        Keep only the most recent backups; returns how many were deleted.
        """

        deleted = 0
        for info in self.list_backups()[self._max_backups:]:
            try:
                Path(info.path).unlink()
                deleted += 1
                logger.info("Deleted old database backup %s", info.name)
            except OSError as exc:
                logger.warning("Could not delete old database backup %s: %s", info.name, exc)
        return deleted

    def list_backups(self) -> list[BackupFileInfo]:
        """
        Return database backups, newest first by modification time.
        """

        if not self._backup_dir.exists():
            return []
        backups: list[BackupFileInfo] = []
        for path in self._backup_dir.iterdir():
            if not (path.name.startswith(DATABASE_BACKUP_PREFIX) and path.name.endswith(DATABASE_BACKUP_SUFFIX)):
                continue
            stats = path.stat()
            backups.append(
                BackupFileInfo(
                    name=path.name,
                    path=str(path),
                    size_bytes=stats.st_size,
                    modified_at=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
                )
            )
        backups.sort(key=lambda item: item.modified_at, reverse=True)
        return backups


# ---------------------------------------------------------------------------
# Scoped game-plan backups
# ---------------------------------------------------------------------------


def sanitize_name(value: str) -> str:
    """
    Strip everything except ASCII letters and digits, for use in file names.
    """

    return re.sub(r"[^a-zA-Z0-9]", "", value)


def _lookup(row: Any) -> dict[str, Any] | None:
    if row is None:
        return None
    return {"id": row.id, "name": row.name}


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_game_plan(plan: GamePlan) -> dict[str, Any]:
    media_sub_type = _lookup(plan.media_sub_type)
    if media_sub_type is not None and plan.media_sub_type.media_type is not None:
        media_sub_type["media_type"] = _lookup(plan.media_sub_type.media_type)
    return {
        "id": plan.id,
        "campaign_id": plan.campaign_id,
        "media_sub_type_id": plan.media_sub_type_id,
        "pm_type_id": plan.pm_type_id,
        "country_id": plan.country_id,
        "financial_cycle_id": plan.financial_cycle_id,
        "business_unit_id": plan.business_unit_id,
        "sub_region_id": plan.sub_region_id,
        "category_id": plan.category_id,
        "range_id": plan.range_id,
        "campaign_archetype": plan.campaign_archetype,
        "playbook_id": plan.playbook_id,
        "burst": plan.burst,
        "start_date": _iso(plan.start_date),
        "end_date": _iso(plan.end_date),
        "year": plan.year,
        "total_budget": plan.total_budget,
        "q1_budget": plan.q1_budget,
        "q2_budget": plan.q2_budget,
        "q3_budget": plan.q3_budget,
        "q4_budget": plan.q4_budget,
        "trps": plan.trps,
        "reach_1_plus": plan.reach_1_plus,
        "reach_3_plus": plan.reach_3_plus,
        "total_weeks": plan.total_weeks,
        "total_woa": plan.total_woa,
        "weeks_off_air": plan.weeks_off_air,
        "created_by": plan.created_by,
        "created_at": _iso(plan.created_at),
        "campaign": _lookup(plan.campaign),
        "media_sub_type": media_sub_type,
        "pm_type": _lookup(plan.pm_type),
        "business_unit": _lookup(plan.business_unit),
        "category": _lookup(plan.category),
        "range": _lookup(plan.range),
        "sub_region": _lookup(plan.sub_region),
    }


# Reference columns checked before a restored row is inserted.
_RESTORE_REFERENCES: tuple[tuple[str, type, bool], ...] = (
    ("campaign_id", Campaign, True),
    ("media_sub_type_id", MediaSubType, True),
    ("country_id", Country, True),
    ("financial_cycle_id", FinancialCycle, True),
    ("pm_type_id", PMType, False),
    ("business_unit_id", BusinessUnit, False),
    ("sub_region_id", SubRegion, False),
    ("category_id", Category, False),
    ("range_id", Range, False),
)

_RESTORED_COLUMNS: tuple[str, ...] = (
    "campaign_archetype",
    "playbook_id",
    "year",
    "total_budget",
    "q1_budget",
    "q2_budget",
    "q3_budget",
    "q4_budget",
    "trps",
    "reach_1_plus",
    "reach_3_plus",
    "total_weeks",
    "total_woa",
    "weeks_off_air",
    "created_by",
)


class GamePlanBackupService:
    """
    Writes, lists and restores scoped game-plan JSON backups.
    """

    def __init__(
        self,
        *,
        backup_dir: str | Path,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backup_dir = Path(backup_dir)
        self._clock = clock

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    def create_backup(
        self,
        *,
        db: Session,
        country_id: int,
        financial_cycle_id: int,
        business_unit_id: int | None = None,
        reason: str = "import",
    ) -> Path:
        """
        Dump every game plan in scope to a JSON file and return its path.
        """

        try:
            country = db.get(Country, country_id)
            cycle = db.get(FinancialCycle, financial_cycle_id)
            business_unit = db.get(BusinessUnit, business_unit_id) if business_unit_id is not None else None
            if country is None or cycle is None:
                raise GamePlanBackupError(
                    f"Country (ID: {country_id}) or financial cycle (ID: {financial_cycle_id}) not found"
                )
            plans = GamePlanRepository(db).list_in_scope(
                country_id=country_id,
                financial_cycle_id=financial_cycle_id,
                business_unit_id=business_unit_id,
            )
            game_plans = [serialize_game_plan(plan) for plan in plans]
        except SQLAlchemyError as exc:
            raise GamePlanBackupError("Failed to read game plans for backup.") from exc

        now = self._clock().astimezone(timezone.utc)
        timestamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
        bu_suffix = f"-{sanitize_name(business_unit.name)}" if business_unit is not None else ""
        file_name = (
            f"{GAME_PLAN_BACKUP_PREFIX}{sanitize_name(country.name)}-{sanitize_name(cycle.name)}"
            f"{bu_suffix}-{timestamp}.json"
        )

        payload: dict[str, Any] = {
            "timestamp": timestamp,
            "countryId": country.id,
            "countryName": country.name,
            "lastUpdateId": cycle.id,
            "lastUpdateName": cycle.name,
            "reason": reason,
            "recordCount": len(game_plans),
            "backupFile": file_name,
            "gamePlans": game_plans,
        }
        if business_unit is not None:
            payload["businessUnitId"] = business_unit.id
            payload["businessUnitName"] = business_unit.name

        target = self._backup_dir / file_name
        tmp_path = target.with_suffix(".json.tmp")
        try:
            self._backup_dir.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, default=str)
            tmp_path.replace(target)
        except OSError as exc:
            raise GamePlanBackupError(f"Failed to write game plan backup {file_name}.") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

        log_event(
            logger,
            logging.INFO,
            "game_plan_backup_created",
            file=file_name,
            country=country.name,
            financial_cycle=cycle.name,
            business_unit=business_unit.name if business_unit is not None else None,
            records=len(game_plans),
            reason=reason,
        )
        return target

    def create_backup_by_name(
        self,
        *,
        db: Session,
        country: str,
        financial_cycle: str,
        business_unit: str | None = None,
        reason: str = "manual",
    ) -> Path:
        repository = MasterDataRepository(db)
        country_row = repository.find_by_name(Country, country)
        cycle_row = repository.find_by_name(FinancialCycle, financial_cycle)
        if country_row is None or cycle_row is None:
            raise GamePlanBackupError(f"Country '{country}' or financial cycle '{financial_cycle}' not found")
        business_unit_id = None
        if business_unit:
            business_unit_row = repository.find_by_name(BusinessUnit, business_unit)
            if business_unit_row is None:
                raise GamePlanBackupError(f"Business unit '{business_unit}' not found")
            business_unit_id = business_unit_row.id
        return self.create_backup(
            db=db,
            country_id=country_row.id,
            financial_cycle_id=cycle_row.id,
            business_unit_id=business_unit_id,
            reason=reason,
        )

    def list_backups(self) -> list[str]:
        """
        Return backup file names, newest first.
        """

        if not self._backup_dir.exists():
            return []
        names = [path.name for path in self._backup_dir.glob("*.json")]
        return sorted(names, reverse=True)

    def resolve(self, backup_file: str | Path) -> Path:
        """
        Map a bare file name onto the backup directory; paths are kept as-is.
        """

        path = Path(backup_file)
        if path.parent == Path("."):
            path = self._backup_dir / path.name
        return path

    def read_backup(self, backup_file: str | Path) -> dict[str, Any]:
        path = self.resolve(backup_file)
        if not path.exists():
            raise GamePlanBackupError(f"Backup file not found: {path}")
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise GamePlanBackupError(f"Backup file could not be read: {path}") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("gamePlans"), list):
            raise GamePlanBackupError(f"Backup file has no gamePlans list: {path}")
        return payload

    def restore_backup(self, *, db: Session, backup_file: str | Path) -> BatchReport:
        """
        Re-insert every row of a backup. Rows that fail are reported and
        skipped; each successful row is committed on its own.
        """

        payload = self.read_backup(backup_file)
        rows: list[dict[str, Any]] = payload["gamePlans"]
        report = BatchReport()

        existing = self._existing_reference_ids(db, rows)
        for position, row in enumerate(rows):
            key = str(row.get("id", f"row-{position}"))
            problem = self._missing_reference(row, existing)
            if problem is not None:
                report.add(ItemResult.failed(key, problem))
                logger.warning("Skipping game plan %s during restore: %s", key, problem)
                continue
            try:
                db.add(self._build_game_plan(row))
                db.commit()
            except (SQLAlchemyError, KeyError, TypeError, ValueError) as exc:
                db.rollback()
                report.add(ItemResult.failed(key, str(exc)))
                logger.warning("Error restoring game plan %s: %s", key, exc)
                continue
            report.add(ItemResult.ok(key))

        log_event(
            logger,
            logging.INFO,
            "game_plan_backup_restored",
            file=payload.get("backupFile"),
            restored=report.succeeded,
            failed=report.failed,
        )
        return report

    @staticmethod
    def _existing_reference_ids(db: Session, rows: list[dict[str, Any]]) -> dict[str, set[int]]:
        repository = MasterDataRepository(db)
        existing: dict[str, set[int]] = {}
        for column, model, _required in _RESTORE_REFERENCES:
            ids = sorted({value for row in rows if (value := _as_int(row.get(column))) is not None})
            existing[column] = repository.existing_ids(model, ids)
        return existing

    @staticmethod
    def _missing_reference(row: dict[str, Any], existing: dict[str, set[int]]) -> str | None:
        for column, _model, required in _RESTORE_REFERENCES:
            value = row.get(column)
            if value is None:
                if required:
                    return f"{column} is missing"
                continue
            reference_id = _as_int(value)
            if reference_id is None:
                return f"{column} {value!r} is not a valid id"
            if reference_id not in existing[column]:
                return f"{column} {value} no longer exists"
        return None

    @staticmethod
    def _build_game_plan(row: dict[str, Any]) -> GamePlan:
        plan = GamePlan(
            campaign_id=int(row["campaign_id"]),
            media_sub_type_id=int(row["media_sub_type_id"]),
            country_id=int(row["country_id"]),
            financial_cycle_id=int(row["financial_cycle_id"]),
            pm_type_id=row.get("pm_type_id"),
            business_unit_id=row.get("business_unit_id"),
            sub_region_id=row.get("sub_region_id"),
            category_id=row.get("category_id"),
            range_id=row.get("range_id"),
            burst=int(row.get("burst") or 1),
            start_date=date.fromisoformat(str(row["start_date"])[:10]),
            end_date=date.fromisoformat(str(row["end_date"])[:10]),
        )
        for column in _RESTORED_COLUMNS:
            setattr(plan, column, row.get(column))
        return plan


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_database_backup_service() -> DatabaseBackupService:
    settings = get_backup_settings()
    return DatabaseBackupService(
        database_path=sqlite_database_path(resolve_database_url()),
        backup_dir=settings.database_backup_dir,
        max_backups=settings.max_database_backups,
    )


@lru_cache(maxsize=1)
def get_game_plan_backup_service() -> GamePlanBackupService:
    return GamePlanBackupService(backup_dir=get_backup_settings().game_plan_backup_dir)
