"""
app/api/routers/media_sufficiency.py

Game-plan CSV upload, validation and import endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_csv_upload
from app.domain.import_records import ValidationIssue, ValidationSummary
from app.domain.master_data import MasterDataIntegrityError
from app.schemas.media_sufficiency import (
    ImportRequest,
    ImportResponse,
    SessionDetailResponse,
    UploadResponse,
    UploadSessionResponse,
    ValidateResponse,
    ValidationIssueResponse,
    ValidationSummaryResponse,
)
from app.services.backup_service import GamePlanBackupError
from app.services.csv_ingestion_service import CSVIngestionError
from app.services.game_plan_import_service import GamePlanPersistenceError, ImportScopeError
from app.services.import_session_service import (
    ImportBlockedError,
    ImportSessionService,
    MissingUploadContextError,
    get_import_session_service,
    session_payload,
)
from app.services.master_data_loader import MasterDataLoadError
from db.repositories import SessionNotFoundError
from db.session import get_db

router = APIRouter(prefix="/admin/media-sufficiency", tags=["media-sufficiency"])


def _summary_response(summary: ValidationSummary) -> ValidationSummaryResponse:
    return ValidationSummaryResponse(**summary.to_dict())


def _issue_responses(issues: list[ValidationIssue]) -> list[ValidationIssueResponse]:
    return [ValidationIssueResponse(**issue.to_dict()) for issue in issues]


def _master_data_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Master data could not be loaded.",
    )


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
def upload_game_plans(
    file: UploadFile = Depends(get_csv_upload),
    country: str | None = Form(default=None),
    financial_cycle: str | None = Form(default=None),
    business_unit: str | None = Form(default=None),
    db: Session = Depends(get_db),
    service: ImportSessionService = Depends(get_import_session_service),
) -> UploadResponse:
    """
    Parse a game-plan CSV and open an upload session.
    """

    try:
        content = file.file.read()
        session = service.upload(
            db=db,
            content=content,
            filename=file.filename or "upload.csv",
            country=country,
            financial_cycle=financial_cycle,
            business_unit=business_unit,
        )
    except MissingUploadContextError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except CSVIngestionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (MasterDataLoadError, MasterDataIntegrityError) as exc:
        raise _master_data_unavailable() from exc
    finally:
        file.file.close()

    return UploadResponse(session_id=session.id, record_count=session.record_count, headers=session.headers)


@router.post("/sessions/{session_id}/validate", response_model=ValidateResponse)
def validate_session(
    session_id: str,
    force: bool = Query(default=False, description="Re-run validation even when cached issues exist"),
    service: ImportSessionService = Depends(get_import_session_service),
) -> ValidateResponse:
    try:
        outcome = service.validate(session_id=session_id, force=force)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return ValidateResponse(
        session_id=outcome.session.id,
        summary=_summary_response(outcome.summary),
        can_import=outcome.summary.can_import,
        issues=_issue_responses(outcome.issues),
    )


@router.get("/sessions/{session_id}", response_model=SessionDetailResponse)
def get_session(
    session_id: str,
    service: ImportSessionService = Depends(get_import_session_service),
) -> SessionDetailResponse:
    try:
        view = service.get_session(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return SessionDetailResponse(
        session=UploadSessionResponse(**session_payload(view.session)),
        headers=view.session.headers,
        records=view.session.records,
        issues=_issue_responses(view.issues) if view.issues is not None else None,
        summary=_summary_response(view.summary) if view.summary is not None else None,
        master_data_counts=view.master_data_counts,
    )


@router.post("/sessions/{session_id}/import", response_model=ImportResponse)
def import_session(
    session_id: str,
    payload: ImportRequest,
    db: Session = Depends(get_db),
    service: ImportSessionService = Depends(get_import_session_service),
) -> ImportResponse:
    """
    Re-validate against fresh master data and replace the scope's game plans.
    """

    try:
        report = service.commit(
            db=db,
            session_id=session_id,
            submitted_by=payload.submitted_by,
            delete_session=payload.delete_session,
        )
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ImportBlockedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.to_dict()) from exc
    except ImportScopeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except (MasterDataLoadError, MasterDataIntegrityError) as exc:
        raise _master_data_unavailable() from exc
    except GamePlanBackupError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Game plan backup failed; import was not started.",
        ) from exc
    except GamePlanPersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to save game plans; no changes were made.",
        ) from exc

    return ImportResponse(**report.to_dict())


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_session(
    session_id: str,
    service: ImportSessionService = Depends(get_import_session_service),
) -> Response:
    if not service.delete(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload session not found.")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
