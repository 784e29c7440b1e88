"""
app/domain package marker.
"""

from app.domain.import_records import ImportRecord, Severity, ValidationContext, ValidationIssue, ValidationSummary
from app.domain.master_data import MasterDataIntegrityError, MasterDataSnapshot
from app.domain.results import BatchReport, ItemResult

__all__ = [
    "BatchReport",
    "ImportRecord",
    "ItemResult",
    "MasterDataIntegrityError",
    "MasterDataSnapshot",
    "Severity",
    "ValidationContext",
    "ValidationIssue",
    "ValidationSummary",
]
