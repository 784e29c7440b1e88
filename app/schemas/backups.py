"""
app/schemas/backups.py

Schemas for database and game-plan backup endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class BackupResultResponse(BaseModel):
    success: bool
    file_name: str | None = None
    error: str | None = None


class DatabaseBackupFileResponse(BaseModel):
    name: str
    size_bytes: int = Field(..., ge=0)
    modified_at: datetime


class DatabaseBackupListResponse(BaseModel):
    backups: list[DatabaseBackupFileResponse] = Field(default_factory=list)


class SchedulerStatusResponse(BaseModel):
    last_backup_time: str | None = None
    last_backup_result: str | None = None
    next_scheduled_time: str | None = None
    is_enabled: bool
    total_backups: int = Field(..., ge=0)
    running: bool
    seconds_until_next_backup: float | None = None


class GamePlanBackupRequest(BaseModel):
    country: str = Field(..., min_length=1)
    financial_cycle: str = Field(..., min_length=1)
    business_unit: str | None = None
    reason: str = "manual"


class GamePlanBackupResponse(BaseModel):
    backup_file: str


class GamePlanBackupListResponse(BaseModel):
    backups: list[str] = Field(default_factory=list)


class GamePlanRestoreRequest(BaseModel):
    backup_file: str = Field(..., min_length=1)


class RestoreFailureResponse(BaseModel):
    key: str
    error: str | None = None


class GamePlanRestoreResponse(BaseModel):
    succeeded: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    failures: list[RestoreFailureResponse] = Field(default_factory=list)
