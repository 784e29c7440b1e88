"""
app/schemas/media_sufficiency.py

Request and response schemas for media-sufficiency import endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ValidationIssueResponse(BaseModel):
    """
    API response model for one validation issue.
    """

    row_index: int = Field(..., ge=0)
    column_name: str
    severity: str
    message: str
    current_value: str | None = None


class ValidationSummaryResponse(BaseModel):
    total: int = Field(..., ge=0)
    critical: int = Field(..., ge=0)
    warning: int = Field(..., ge=0)
    suggestion: int = Field(..., ge=0)
    unique_rows: int = Field(..., ge=0)
    by_field: dict[str, int] = Field(default_factory=dict)
    can_import: bool


class UploadSessionResponse(BaseModel):
    id: str
    original_filename: str
    file_size: int = Field(..., ge=0)
    record_count: int = Field(..., ge=0)
    country: str
    financial_cycle: str
    business_unit: str | None = None
    status: str
    created_at: datetime
    expires_at: datetime
    last_accessed_at: datetime
    error: str | None = None


class UploadResponse(BaseModel):
    session_id: str
    record_count: int = Field(..., ge=0)
    headers: list[str] = Field(default_factory=list)


class ValidateResponse(BaseModel):
    session_id: str
    summary: ValidationSummaryResponse
    can_import: bool
    issues: list[ValidationIssueResponse] = Field(default_factory=list)


class SessionDetailResponse(BaseModel):
    session: UploadSessionResponse
    headers: list[str] = Field(default_factory=list)
    records: list[dict[str, str]] = Field(default_factory=list)
    issues: list[ValidationIssueResponse] | None = None
    summary: ValidationSummaryResponse | None = None
    master_data_counts: dict[str, int] = Field(default_factory=dict)


class ImportRequest(BaseModel):
    submitted_by: str = Field(..., min_length=1)
    delete_session: bool = False


class ImportFailureResponse(BaseModel):
    key: str
    error: str | None = None


class ImportResponse(BaseModel):
    imported: int = Field(..., ge=0)
    deleted: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    failures: list[ImportFailureResponse] = Field(default_factory=list)
    auto_created_campaigns: list[str] = Field(default_factory=list)
    auto_created_ranges: list[str] = Field(default_factory=list)
    backup_file: str | None = None
