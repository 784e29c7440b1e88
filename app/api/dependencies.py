"""
app/api/dependencies.py

Shared FastAPI dependencies: CSV upload guard and the app-scoped backup
scheduler.
"""

from __future__ import annotations

from fastapi import File, HTTPException, Request, UploadFile, status

from app.scheduler.backup_scheduler import BackupScheduler

CSV_CONTENT_TYPES = frozenset(
    {
        "text/csv",
        "application/csv",
        "application/vnd.ms-excel",
    }
)


def _looks_like_csv(upload: UploadFile) -> bool:
    filename = (upload.filename or "").strip().lower()
    content_type = (upload.content_type or "").split(";", 1)[0].strip().lower()
    return filename.endswith(".csv") or content_type in CSV_CONTENT_TYPES


def get_csv_upload(file: UploadFile = File(...)) -> UploadFile:
    """Accept the upload when either its extension or its MIME type says CSV."""

    if not _looks_like_csv(file):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV files are allowed.",
        )
    return file


def get_backup_scheduler(request: Request) -> BackupScheduler:
    """
    Scheduler started by the application lifespan; 503 when it is disabled.
    """

    scheduler = getattr(request.app.state, "backup_scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Backup scheduler is not running.",
        )
    return scheduler
