"""
app/mappers package marker.
"""

from app.mappers.header_mapper import (
    FIELD_REGISTRY,
    FieldSpec,
    HeaderResolution,
    normalize_record,
    normalize_records,
    resolve_headers,
)

__all__ = [
    "FIELD_REGISTRY",
    "FieldSpec",
    "HeaderResolution",
    "normalize_record",
    "normalize_records",
    "resolve_headers",
]
