"""
app/validators/summary.py

Aggregates validation issues into the counts shown before an import.
"""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from app.domain.import_records import Severity, ValidationIssue, ValidationSummary


def summarize_issues(issues: Iterable[ValidationIssue]) -> ValidationSummary:
    """
    Count issues by severity and by column; the import is allowed when no
    critical issue exists.
    """

    severities: Counter[str] = Counter()
    by_field: Counter[str] = Counter()
    rows: set[int] = set()
    total = 0

    for issue in issues:
        total += 1
        severities[issue.severity] += 1
        by_field[issue.column_name] += 1
        rows.add(issue.row_index)

    return ValidationSummary(
        total=total,
        critical=severities[Severity.CRITICAL],
        warning=severities[Severity.WARNING],
        suggestion=severities[Severity.SUGGESTION],
        unique_rows=len(rows),
        by_field=dict(by_field),
    )
