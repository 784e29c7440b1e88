"""
app/api/routers/backups.py

Database backup, scheduler and game-plan backup endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_backup_scheduler
from app.scheduler.backup_scheduler import BackupScheduler
from app.schemas.backups import (
    BackupResultResponse,
    DatabaseBackupFileResponse,
    DatabaseBackupListResponse,
    GamePlanBackupListResponse,
    GamePlanBackupRequest,
    GamePlanBackupResponse,
    GamePlanRestoreRequest,
    GamePlanRestoreResponse,
    SchedulerStatusResponse,
)
from app.services.backup_service import (
    DatabaseBackupService,
    GamePlanBackupError,
    GamePlanBackupService,
    get_database_backup_service,
    get_game_plan_backup_service,
)
from db.session import get_db

router = APIRouter(prefix="/admin/backups", tags=["backups"])


# ---------------------------------------------------------------------------
# Full-database backups
# ---------------------------------------------------------------------------


@router.get("/database", response_model=DatabaseBackupListResponse)
def list_database_backups(
    backup_service: DatabaseBackupService = Depends(get_database_backup_service),
) -> DatabaseBackupListResponse:
    return DatabaseBackupListResponse(
        backups=[
            DatabaseBackupFileResponse(name=item.name, size_bytes=item.size_bytes, modified_at=item.modified_at)
            for item in backup_service.list_backups()
        ]
    )


@router.post("/database", response_model=BackupResultResponse)
def create_database_backup(
    scheduler: BackupScheduler = Depends(get_backup_scheduler),
) -> BackupResultResponse:
    """
    Run a full-database backup now and move the next scheduled run.
    """

    result = scheduler.trigger_now()
    return BackupResultResponse(success=result.success, file_name=result.file_name, error=result.error)


@router.get("/scheduler", response_model=SchedulerStatusResponse)
def scheduler_status(scheduler: BackupScheduler = Depends(get_backup_scheduler)) -> SchedulerStatusResponse:
    return SchedulerStatusResponse(**scheduler.status())


@router.post("/scheduler/enable", response_model=SchedulerStatusResponse)
def enable_scheduler(scheduler: BackupScheduler = Depends(get_backup_scheduler)) -> SchedulerStatusResponse:
    scheduler.enable()
    return SchedulerStatusResponse(**scheduler.status())


@router.post("/scheduler/disable", response_model=SchedulerStatusResponse)
def disable_scheduler(scheduler: BackupScheduler = Depends(get_backup_scheduler)) -> SchedulerStatusResponse:
    scheduler.disable()
    return SchedulerStatusResponse(**scheduler.status())


# ---------------------------------------------------------------------------
# Game-plan backups
# ---------------------------------------------------------------------------


@router.get("/game-plans", response_model=GamePlanBackupListResponse)
def list_game_plan_backups(
    backup_service: GamePlanBackupService = Depends(get_game_plan_backup_service),
) -> GamePlanBackupListResponse:
    return GamePlanBackupListResponse(backups=backup_service.list_backups())


@router.post("/game-plans", response_model=GamePlanBackupResponse, status_code=status.HTTP_201_CREATED)
def create_game_plan_backup(
    payload: GamePlanBackupRequest,
    db: Session = Depends(get_db),
    backup_service: GamePlanBackupService = Depends(get_game_plan_backup_service),
) -> GamePlanBackupResponse:
    try:
        path = backup_service.create_backup_by_name(
            db=db,
            country=payload.country,
            financial_cycle=payload.financial_cycle,
            business_unit=payload.business_unit,
            reason=payload.reason,
        )
    except GamePlanBackupError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return GamePlanBackupResponse(backup_file=path.name)


@router.post("/game-plans/restore", response_model=GamePlanRestoreResponse)
def restore_game_plan_backup(
    payload: GamePlanRestoreRequest,
    db: Session = Depends(get_db),
    backup_service: GamePlanBackupService = Depends(get_game_plan_backup_service),
) -> GamePlanRestoreResponse:
    """
    Re-insert the rows of a backup file; rows that fail are reported, not raised.
    """

    if "/" in payload.backup_file or "\\" in payload.backup_file:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Backup file must be a file name.")
    try:
        report = backup_service.restore_backup(db=db, backup_file=payload.backup_file)
    except GamePlanBackupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return GamePlanRestoreResponse(**report.to_dict())
