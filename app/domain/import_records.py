"""
app/domain/import_records.py

Domain models used by the game-plan import validation flow.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable

_CYCLE_YEAR_PATTERN = re.compile(r"(\d{4})")


class Severity:
    """
    Issue severities. Only CRITICAL blocks an import.
    """

    CRITICAL = "critical"
    WARNING = "warning"
    SUGGESTION = "suggestion"

    ALL = (CRITICAL, WARNING, SUGGESTION)


@dataclass(frozen=True)
class ImportRecord:
    """
    One CSV row keyed by logical field, values trimmed and blanks as None.
    """

    year: str | None = None
    sub_region: str | None = None
    country: str | None = None
    category: str | None = None
    range: str | None = None
    campaign: str | None = None
    campaign_archetype: str | None = None
    media: str | None = None
    media_subtype: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    budget: str | None = None
    jan: str | None = None
    feb: str | None = None
    mar: str | None = None
    apr: str | None = None
    may: str | None = None
    jun: str | None = None
    jul: str | None = None
    aug: str | None = None
    sep: str | None = None
    oct: str | None = None
    nov: str | None = None
    dec: str | None = None
    burst: str | None = None
    pm_type: str | None = None
    business_unit: str | None = None
    total_trps: str | None = None
    total_r1_plus: str | None = None
    total_r3_plus: str | None = None
    total_weeks: str | None = None
    total_woa: str | None = None
    total_woff: str | None = None
    playbook_id: str | None = None

    aliased_fields: dict[str, str] = field(default_factory=dict)
    unmapped_columns: tuple[str, ...] = ()
    extra_values: dict[str, str] = field(default_factory=dict)

    def is_blank(self) -> bool:
        return all(getattr(self, name) is None for name in _VALUE_ATTRIBUTES)


_VALUE_ATTRIBUTES: tuple[str, ...] = tuple(
    name
    for name in ImportRecord.__dataclass_fields__
    if name not in {"aliased_fields", "unmapped_columns", "extra_values"}
)


@dataclass(frozen=True)
class ValidationIssue:
    """
    One problem found on one row, addressed by logical column name.
    """

    row_index: int
    column_name: str
    severity: str
    message: str
    current_value: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_index": self.row_index,
            "column_name": self.column_name,
            "severity": self.severity,
            "message": self.message,
            "current_value": self.current_value,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> ValidationIssue:
        return cls(
            row_index=int(payload["row_index"]),
            column_name=str(payload["column_name"]),
            severity=str(payload["severity"]),
            message=str(payload["message"]),
            current_value=payload.get("current_value"),
        )


@dataclass(frozen=True)
class ValidationContext:
    """
    Upload-level selections every row is checked against.
    """

    country: str | None = None
    financial_cycle: str | None = None
    business_unit: str | None = None

    @property
    def cycle_year(self) -> int | None:
        """
        First 4-digit number in the financial cycle name, e.g. 2025 for "ABP 2025".
        """

        if not self.financial_cycle:
            return None
        match = _CYCLE_YEAR_PATTERN.search(self.financial_cycle)
        if match is None:
            return None
        return int(match.group(1))


@dataclass(frozen=True)
class ValidationSummary:
    """
    Counts over a list of issues.
    """

    total: int = 0
    critical: int = 0
    warning: int = 0
    suggestion: int = 0
    unique_rows: int = 0
    by_field: dict[str, int] = field(default_factory=dict)

    @property
    def can_import(self) -> bool:
        return self.critical == 0

    def __add__(self, other: ValidationSummary) -> ValidationSummary:
        """
        Combine summaries of issue lists that cover disjoint rows.
        """

        if not isinstance(other, ValidationSummary):
            return NotImplemented
        by_field = Counter(self.by_field)
        by_field.update(other.by_field)
        return ValidationSummary(
            total=self.total + other.total,
            critical=self.critical + other.critical,
            warning=self.warning + other.warning,
            suggestion=self.suggestion + other.suggestion,
            unique_rows=self.unique_rows + other.unique_rows,
            by_field=dict(by_field),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "critical": self.critical,
            "warning": self.warning,
            "suggestion": self.suggestion,
            "unique_rows": self.unique_rows,
            "by_field": dict(self.by_field),
            "can_import": self.can_import,
        }


def issues_to_dicts(issues: Iterable[ValidationIssue]) -> list[dict[str, Any]]:
    return [issue.to_dict() for issue in issues]


def issues_from_dicts(payload: Iterable[dict[str, Any]]) -> list[ValidationIssue]:
    return [ValidationIssue.from_dict(item) for item in payload]
