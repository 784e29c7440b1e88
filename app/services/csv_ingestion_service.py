"""
app/services/csv_ingestion_service.py

Parses uploaded game-plan CSV content into ordered header-keyed records.

Ragged rows are kept rather than rejected: missing trailing cells become
empty strings and surplus cells are stored under ``__extra_<n>`` keys so
the record validator can flag them.
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass

from app.mappers.header_mapper import EXTRA_CELL_PREFIX

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class CSVIngestionError(ValueError):
    """
    Raised when the file itself cannot be read as a CSV with data rows.
    """


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedCSV:
    headers: tuple[str, ...]
    records: list[dict[str, str]]

    @property
    def record_count(self) -> int:
        return len(self.records)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_csv_bytes(content: bytes) -> ParsedCSV:
    """
    Decode raw upload bytes as UTF-8 (BOM tolerated) and parse them.
    """

    if not content:
        raise CSVIngestionError("CSV file is empty.")
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CSVIngestionError("CSV must be UTF-8 encoded.") from exc
    return parse_csv_text(text)


def parse_csv_text(text: str) -> ParsedCSV:
    """
    Parse CSV text in a single pass.

    The first non-blank row is the header row. Completely blank lines are
    skipped.
    """

    if text.startswith("\ufeff"):
        text = text[1:]
    if not text.strip():
        raise CSVIngestionError("CSV file is empty.")

    reader = csv.reader(io.StringIO(text, newline=""), strict=True)
    headers: tuple[str, ...] | None = None
    records: list[dict[str, str]] = []

    try:
        for row in reader:
            if _is_blank_row(row):
                continue
            if headers is None:
                headers = _unique_headers(row)
                continue
            records.append(_row_to_record(headers, row))
    except csv.Error as exc:
        raise CSVIngestionError(f"Invalid CSV format: {exc}") from exc

    if headers is None or not any(headers):
        raise CSVIngestionError("CSV header row is missing.")
    if not records:
        raise CSVIngestionError("CSV contains a header row but no data rows.")

    logger.info("Parsed CSV upload: headers=%d rows=%d", len(headers), len(records))
    return ParsedCSV(headers=headers, records=records)


def _is_blank_row(row: list[str]) -> bool:
    return all(not cell.strip() for cell in row)


def _unique_headers(row: list[str]) -> tuple[str, ...]:
    """
    Trim header cells; later duplicates get a numeric suffix.
    """

    seen: dict[str, int] = {}
    headers: list[str] = []
    for position, cell in enumerate(row, start=1):
        header = cell.strip() or f"Column {position}"
        count = seen.get(header, 0)
        seen[header] = count + 1
        headers.append(header if count == 0 else f"{header} ({count + 1})")
    return tuple(headers)


def _row_to_record(headers: tuple[str, ...], row: list[str]) -> dict[str, str]:
    record = {header: (row[index] if index < len(row) else "") for index, header in enumerate(headers)}
    for offset, cell in enumerate(row[len(headers):], start=1):
        record[f"{EXTRA_CELL_PREFIX}{offset}"] = cell
    return record
