"""
app/scheduler/backup_scheduler.py

Daily full-database backup job on an APScheduler ``BackgroundScheduler``.

The job is a one-shot ``date`` trigger at the persisted next run time.
Every run, successful or not, moves the next run to the coming 02:00 local
time and schedules it again. Scheduler state survives restarts in a small
JSON file.

State changes are serialized by one lock, so a manual trigger and the
scheduled job never interleave their updates.

Lifecycle
----------
Construct one ``BackupScheduler`` at app boot and call ``start()``; call
``stop()`` on shutdown. The FastAPI ``lifespan`` in main.py does both and
exposes the instance on ``app.state.backup_scheduler``.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable

from apscheduler.schedulers.background import BackgroundScheduler

from app.logging_utils import log_event
from app.services.backup_service import BackupResult, DatabaseBackupService

logger = logging.getLogger(__name__)

JOB_ID = "database_backup"
RESULT_SUCCESS = "success"
RESULT_FAILED = "failed"


def _local_now() -> datetime:
    return datetime.now().astimezone()


def next_run_after(now: datetime, hour: int = 2) -> datetime:
    """
    Return the first `hour`:00 strictly after `now`, in `now`'s timezone.
    """

    candidate = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


@dataclass
class SchedulerState:
    last_backup_time: str | None = None
    last_backup_result: str | None = None
    next_scheduled_time: str | None = None
    is_enabled: bool = True
    total_backups: int = 0

    def to_json(self) -> dict[str, Any]:
        return {
            "lastBackupTime": self.last_backup_time,
            "lastBackupResult": self.last_backup_result,
            "nextScheduledTime": self.next_scheduled_time,
            "isEnabled": self.is_enabled,
            "totalBackups": self.total_backups,
        }

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> SchedulerState:
        return cls(
            last_backup_time=payload.get("lastBackupTime") or None,
            last_backup_result=payload.get("lastBackupResult"),
            next_scheduled_time=payload.get("nextScheduledTime") or None,
            is_enabled=bool(payload.get("isEnabled", True)),
            total_backups=int(payload.get("totalBackups", 0)),
        )


class BackupScheduler:
    """
    Owns the daily database backup job and its persisted state.
    """

    def __init__(
        self,
        backup_service: DatabaseBackupService,
        state_path: str | Path,
        hour: int = 2,
        *,
        scheduler: BackgroundScheduler | None = None,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self._backup_service = backup_service
        self._state_path = Path(state_path)
        self._hour = hour
        self._scheduler = scheduler or BackgroundScheduler()
        self._clock = clock
        self._started = False
        self._lock = threading.Lock()
        self._state = self._load_state()

    @property
    def started(self) -> bool:
        return self._started

    @property
    def state(self) -> SchedulerState:
        return self._state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """
        Start the scheduler once per process. Returns False when already started.
        """

        if self._started:
            logger.info("Backup scheduler already started; ignoring start()")
            return False
        if not self._scheduler.running:
            self._scheduler.start()
        self._started = True
        with self._lock:
            enabled = self._state.is_enabled
            if enabled:
                self._schedule_next()
        if not enabled:
            logger.info("Backup scheduler is disabled")
        return True

    def stop(self) -> None:
        if not self._started:
            return
        with self._lock:
            self._remove_job()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Backup scheduler stopped")

    def enable(self) -> None:
        """
        Re-enable the daily job. A next run time that passed while disabled
        is replaced by the coming run rather than firing at once.
        """

        with self._lock:
            now = self._clock()
            self._state.is_enabled = True
            next_run = _parse_time(self._state.next_scheduled_time)
            if next_run is None or next_run <= now:
                self._state.next_scheduled_time = next_run_after(now, self._hour).isoformat()
            self._save_state()
            if self._started:
                self._schedule_next()
        logger.info("Backup scheduler enabled")

    def disable(self) -> None:
        with self._lock:
            self._state.is_enabled = False
            self._remove_job()
            self._save_state()
        logger.info("Backup scheduler disabled")

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def trigger_now(self) -> BackupResult:
        """
        Run a backup immediately and move the next scheduled run.
        """

        with self._lock:
            result = self._perform_backup()
            if self._started and self._state.is_enabled:
                self._schedule_next()
        return result

    def perform_backup(self) -> BackupResult:
        with self._lock:
            return self._perform_backup()

    def _perform_backup(self) -> BackupResult:
        # Caller holds self._lock.
        try:
            result = self._backup_service.create_backup()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Database backup raised unexpectedly")
            result = BackupResult(success=False, error=str(exc))

        now = self._clock()
        if result.success:
            self._state.last_backup_time = now.isoformat()
            self._state.last_backup_result = RESULT_SUCCESS
            self._state.total_backups += 1
        else:
            self._state.last_backup_result = RESULT_FAILED
        self._state.next_scheduled_time = next_run_after(now, self._hour).isoformat()
        self._save_state()

        log_event(
            logger,
            logging.INFO if result.success else logging.ERROR,
            "scheduled_database_backup",
            success=result.success,
            file=result.file_name,
            error=result.error,
            next_run=self._state.next_scheduled_time,
        )
        return result

    def _run_job(self) -> None:
        with self._lock:
            self._perform_backup()
            if self._started and self._state.is_enabled:
                self._schedule_next()

    def _schedule_next(self) -> None:
        now = self._clock()
        run_at = _parse_time(self._state.next_scheduled_time)
        if run_at is None:
            run_at = next_run_after(now, self._hour)
            self._state.next_scheduled_time = run_at.isoformat()
            self._save_state()

        job_kwargs: dict[str, Any] = {
            "trigger": "date",
            "id": JOB_ID,
            "name": "Daily database backup",
            "replace_existing": True,
            "misfire_grace_time": 3600,
        }
        if run_at > now:
            job_kwargs["run_date"] = run_at
        self._scheduler.add_job(self._run_job, **job_kwargs)
        logger.info("Next database backup scheduled for %s", run_at.isoformat())

    def _remove_job(self) -> None:
        if self._scheduler.get_job(JOB_ID) is not None:
            self._scheduler.remove_job(JOB_ID)

    # ------------------------------------------------------------------
    # Status and persistence
    # ------------------------------------------------------------------

    def status(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            state = SchedulerState(**asdict(self._state))
        next_run = _parse_time(state.next_scheduled_time)
        seconds_until = max(0.0, (next_run - now).total_seconds()) if next_run is not None else None
        return {
            **asdict(state),
            "running": self._started,
            "seconds_until_next_backup": seconds_until,
        }

    def _load_state(self) -> SchedulerState:
        if self._state_path.exists():
            try:
                return SchedulerState.from_json(json.loads(self._state_path.read_text(encoding="utf-8")))
            except (OSError, ValueError, TypeError) as exc:
                logger.warning("Ignoring unreadable scheduler state %s: %s", self._state_path, exc)
        return SchedulerState(next_scheduled_time=next_run_after(self._clock(), self._hour).isoformat())

    def _save_state(self) -> None:
        tmp_path = self._state_path.with_suffix(".json.tmp")
        try:
            self._state_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(self._state.to_json(), indent=2), encoding="utf-8")
            tmp_path.replace(self._state_path)
        except OSError as exc:
            logger.error("Error saving scheduler state to %s: %s", self._state_path, exc)


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed
