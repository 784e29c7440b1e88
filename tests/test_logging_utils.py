"""
tests/test_logging_utils.py

Structured event lines for imports and backups.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from app.domain.import_records import Severity, ValidationIssue
from app.logging_utils import event_payload, log_event
from app.validators.summary import summarize_issues

logger = logging.getLogger("tests.logging_utils")


def test_payload_keeps_file_names_only() -> None:
    payload = event_payload("database_backup_created", file=Path("/srv/backups/golden_rules_backup_2025-03-04.db"))

    assert payload == {"event": "database_backup_created", "file": "golden_rules_backup_2025-03-04.db"}


def test_payload_drops_missing_fields_and_formats_dates() -> None:
    payload = event_payload(
        "game_plan_import_committed",
        business_unit=None,
        started=date(2025, 3, 1),
        next_run=datetime(2025, 3, 5, 2, 0, tzinfo=timezone.utc),
        imported=0,
    )

    assert payload == {
        "event": "game_plan_import_committed",
        "started": "2025-03-01",
        "next_run": "2025-03-05T02:00:00+00:00",
        "imported": 0,
    }


def test_summary_is_nested(caplog: pytest.LogCaptureFixture) -> None:
    summary = summarize_issues(
        [ValidationIssue(row_index=0, column_name="Media", severity=Severity.CRITICAL, message="Unknown media.")]
    )

    with caplog.at_level(logging.INFO, logger=logger.name):
        log_event(logger, logging.INFO, "import_validated", session_id="abc", summary=summary)

    record = json.loads(caplog.records[0].getMessage())
    assert record["event"] == "import_validated"
    assert record["summary"]["critical"] == 1
    assert record["summary"]["can_import"] is False


def test_disabled_level_emits_nothing(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger=logger.name):
        log_event(logger, logging.INFO, "import_upload_received", records=3)

    assert caplog.records == []
