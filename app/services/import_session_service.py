"""
app/services/import_session_service.py

Upload -> validate -> import workflow for game-plan CSV files.

Each upload is parsed once and kept in the session store together with the
master-data snapshot it was validated against. Importing always reloads
master data and re-validates, so rows are never committed against a stale
snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable

from sqlalchemy.orm import Session

from app.config import (
    get_auto_create_settings,
    get_import_validation_settings,
    get_session_store_settings,
)
from app.domain.import_records import (
    ImportRecord,
    ValidationContext,
    ValidationIssue,
    ValidationSummary,
    issues_from_dicts,
    issues_to_dicts,
)
from app.domain.master_data import MasterDataSnapshot
from app.logging_utils import log_event
from app.mappers.header_mapper import normalize_records
from app.services.backup_service import get_game_plan_backup_service
from app.services.csv_ingestion_service import CSVIngestionError, parse_csv_bytes
from app.services.game_plan_import_service import GamePlanImportService, ImportReport
from app.services.master_data_loader import load_master_data
from app.validators.record_validator import RecordValidator, get_record_validator
from app.validators.summary import summarize_issues
from db.repositories import (
    FileSessionStore,
    InMemorySessionStore,
    SessionStore,
    UploadSession,
    UploadStatus,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class MissingUploadContextError(ValueError):
    """
    Raised when an upload lacks its country or financial cycle.
    """


class ImportBlockedError(RuntimeError):
    """
    Raised when re-validation before import still finds critical issues.
    """

    def __init__(self, message: str, *, summary: ValidationSummary | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.summary = summary

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "summary": self.summary.to_dict() if self.summary is not None else None,
        }


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationOutcome:
    session: UploadSession
    issues: list[ValidationIssue]
    summary: ValidationSummary


@dataclass(frozen=True)
class SessionView:
    session: UploadSession
    issues: list[ValidationIssue] | None
    summary: ValidationSummary | None
    master_data_counts: dict[str, int]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class ImportSessionService:
    """
    Coordinates CSV upload sessions, validation and import commits.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        validator: RecordValidator,
        importer: GamePlanImportService,
        max_upload_bytes: int,
        snapshot_loader: Callable[[Session], MasterDataSnapshot] = load_master_data,
    ) -> None:
        self._store = store
        self._validator = validator
        self._importer = importer
        self._max_upload_bytes = max(1, max_upload_bytes)
        self._load_snapshot = snapshot_loader

    @property
    def store(self) -> SessionStore:
        return self._store

    def upload(
        self,
        *,
        db: Session,
        content: bytes,
        filename: str,
        country: str | None,
        financial_cycle: str | None,
        business_unit: str | None = None,
    ) -> UploadSession:
        """
        Parse the file, snapshot master data and open a new session.
        """

        country = (country or "").strip()
        financial_cycle = (financial_cycle or "").strip()
        if not country or not financial_cycle:
            raise MissingUploadContextError("Country and financial cycle are required for upload.")
        if len(content) > self._max_upload_bytes:
            raise CSVIngestionError(
                f"CSV file is too large ({len(content)} bytes; limit {self._max_upload_bytes})."
            )

        parsed = parse_csv_bytes(content)
        snapshot = self._load_snapshot(db)

        session = self._store.create(
            original_filename=filename,
            file_size=len(content),
            country=country,
            financial_cycle=financial_cycle,
            business_unit=(business_unit or "").strip() or None,
            headers=list(parsed.headers),
            records=parsed.records,
            master_data=snapshot.to_dict(),
        )
        log_event(
            logger,
            logging.INFO,
            "import_upload_received",
            session_id=session.id,
            file=filename,
            records=session.record_count,
            country=country,
            financial_cycle=financial_cycle,
        )
        return session

    def validate(self, *, session_id: str, force: bool = False) -> ValidationOutcome:
        """
        Validate a session's rows against its stored snapshot.

        Cached issues are reused unless `force` is set.
        """

        session = self._store.get(session_id)
        if session.issues is not None and not force:
            issues = issues_from_dicts(session.issues)
            return ValidationOutcome(session=session, issues=issues, summary=summarize_issues(issues))

        snapshot = MasterDataSnapshot.from_dict(session.master_data)
        issues = self._validator.validate_records(self._records(session), snapshot, _context(session))
        session.issues = issues_to_dicts(issues)
        if session.status in {UploadStatus.UPLOADED, UploadStatus.VALIDATED, UploadStatus.FAILED}:
            session.status = UploadStatus.VALIDATED
        self._store.put(session)

        summary = summarize_issues(issues)
        log_event(
            logger,
            logging.INFO,
            "import_validated",
            session_id=session.id,
            summary=summary,
        )
        return ValidationOutcome(session=session, issues=issues, summary=summary)

    def get_session(self, session_id: str) -> SessionView:
        session = self._store.get(session_id)
        issues = issues_from_dicts(session.issues) if session.issues is not None else None
        return SessionView(
            session=session,
            issues=issues,
            summary=summarize_issues(issues) if issues is not None else None,
            master_data_counts=MasterDataSnapshot.from_dict(session.master_data).counts(),
        )

    def commit(
        self,
        *,
        db: Session,
        session_id: str,
        submitted_by: str,
        delete_session: bool = False,
    ) -> ImportReport:
        """
        Re-validate against fresh master data and replace the scope's game plans.
        """

        session = self._store.get(session_id)
        if session.status == UploadStatus.IMPORTING:
            raise ImportBlockedError("An import for this session is already running.")
        if session.status == UploadStatus.IMPORTED:
            raise ImportBlockedError("This session has already been imported.")

        snapshot = self._load_snapshot(db)
        records = self._records(session)
        issues = self._validator.validate_records(records, snapshot, _context(session))
        summary = summarize_issues(issues)
        session.master_data = snapshot.to_dict()
        session.issues = issues_to_dicts(issues)

        if not summary.can_import:
            session.status = UploadStatus.VALIDATED
            self._store.put(session)
            raise ImportBlockedError(
                f"Import blocked by {summary.critical} critical issue(s).",
                summary=summary,
            )

        session.status = UploadStatus.IMPORTING
        self._store.put(session)
        try:
            report = self._importer.import_records(
                db=db,
                records=records,
                context=_context(session),
                submitted_by=submitted_by,
                source_name=session.original_filename,
            )
        except Exception as exc:
            session.status = UploadStatus.FAILED
            session.error = str(exc)
            self._store.put(session)
            raise

        session.status = UploadStatus.IMPORTED
        session.error = None
        session.import_result = report.to_dict()
        if delete_session:
            self._store.delete(session.id)
        else:
            self._store.put(session)
        return report

    def delete(self, session_id: str) -> bool:
        return self._store.delete(session_id)

    @staticmethod
    def _records(session: UploadSession) -> list[ImportRecord]:
        return normalize_records(session.records)


def _context(session: UploadSession) -> ValidationContext:
    return ValidationContext(
        country=session.country,
        financial_cycle=session.financial_cycle,
        business_unit=session.business_unit,
    )


def session_payload(session: UploadSession) -> dict[str, Any]:
    """
    Session metadata without raw rows or stored snapshot.
    """

    return {
        "id": session.id,
        "original_filename": session.original_filename,
        "file_size": session.file_size,
        "record_count": session.record_count,
        "country": session.country,
        "financial_cycle": session.financial_cycle,
        "business_unit": session.business_unit,
        "status": session.status,
        "created_at": session.created_at,
        "expires_at": session.expires_at,
        "last_accessed_at": session.last_accessed_at,
        "error": session.error,
    }


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_session_store() -> SessionStore:
    settings = get_session_store_settings()
    if settings.backend == "memory":
        return InMemorySessionStore(timeout_hours=settings.timeout_hours)
    return FileSessionStore(settings.directory, timeout_hours=settings.timeout_hours)


@lru_cache(maxsize=1)
def get_import_session_service() -> ImportSessionService:
    """
    Build and cache the import session service with env-driven settings.
    """

    return ImportSessionService(
        store=build_session_store(),
        validator=get_record_validator(),
        importer=GamePlanImportService(
            backup_service=get_game_plan_backup_service(),
            auto_create_settings=get_auto_create_settings(),
        ),
        max_upload_bytes=get_import_validation_settings().max_upload_bytes,
    )
