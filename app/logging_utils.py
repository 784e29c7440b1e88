"""
app/logging_utils.py

JSON event lines for upload sessions, import commits and backup runs.

Each line carries `event` plus the keyword fields of the call:

- backup files are logged by name so server paths stay out of the logs
- dates and datetimes are written in ISO format
- summaries and reports (anything with `to_dict`) are nested as objects
- fields passed as None are left out, so an import without a business
  unit has no `business_unit` key
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any


def _field_value(value: Any) -> Any:
    if isinstance(value, Path):
        return value.name
    if isinstance(value, date):
        return value.isoformat()
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return value


def event_payload(event: str, **fields: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        if value is not None:
            payload[key] = _field_value(value)
    return payload


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    if not logger.isEnabledFor(level):
        return
    logger.log(level, json.dumps(event_payload(event, **fields), default=str, sort_keys=True))
