"""
Typed DTOs used by the upload session store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class UploadStatus:
    UPLOADED = "uploaded"
    VALIDATED = "validated"
    IMPORTING = "importing"
    IMPORTED = "imported"
    FAILED = "failed"

    ALL = (UPLOADED, VALIDATED, IMPORTING, IMPORTED, FAILED)


@dataclass
class UploadSession:
    """
    Server-side state of one CSV upload between upload, validation and import.

    `master_data`, `issues` and `import_result` hold plain JSON-compatible
    payloads so any key-value backend can persist a session.
    """

    id: str
    original_filename: str
    file_size: int
    record_count: int
    country: str
    financial_cycle: str
    created_at: datetime
    expires_at: datetime
    last_accessed_at: datetime
    business_unit: str | None = None
    status: str = UploadStatus.UPLOADED
    headers: list[str] = field(default_factory=list)
    records: list[dict[str, str]] = field(default_factory=list)
    master_data: dict[str, Any] = field(default_factory=dict)
    issues: list[dict[str, Any]] | None = None
    import_result: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "original_filename": self.original_filename,
            "file_size": self.file_size,
            "record_count": self.record_count,
            "country": self.country,
            "financial_cycle": self.financial_cycle,
            "business_unit": self.business_unit,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "last_accessed_at": self.last_accessed_at.isoformat(),
            "status": self.status,
            "headers": list(self.headers),
            "records": list(self.records),
            "master_data": self.master_data,
            "issues": self.issues,
            "import_result": self.import_result,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> UploadSession:
        return cls(
            id=str(payload["id"]),
            original_filename=str(payload.get("original_filename", "")),
            file_size=int(payload.get("file_size", 0)),
            record_count=int(payload.get("record_count", 0)),
            country=str(payload["country"]),
            financial_cycle=str(payload["financial_cycle"]),
            business_unit=payload.get("business_unit"),
            created_at=datetime.fromisoformat(payload["created_at"]),
            expires_at=datetime.fromisoformat(payload["expires_at"]),
            last_accessed_at=datetime.fromisoformat(payload["last_accessed_at"]),
            status=str(payload.get("status", UploadStatus.UPLOADED)),
            headers=list(payload.get("headers", [])),
            records=list(payload.get("records", [])),
            master_data=dict(payload.get("master_data", {})),
            issues=payload.get("issues"),
            import_result=payload.get("import_result"),
            error=payload.get("error"),
        )
