"""
app/schemas package marker.
"""

from app.schemas.backups import (
    BackupResultResponse,
    GamePlanBackupResponse,
    GamePlanRestoreResponse,
    SchedulerStatusResponse,
)
from app.schemas.media_sufficiency import (
    ImportResponse,
    SessionDetailResponse,
    UploadResponse,
    ValidateResponse,
)

__all__ = [
    "BackupResultResponse",
    "GamePlanBackupResponse",
    "GamePlanRestoreResponse",
    "ImportResponse",
    "SchedulerStatusResponse",
    "SessionDetailResponse",
    "UploadResponse",
    "ValidateResponse",
]
