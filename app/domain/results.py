"""
app/domain/results.py

Per-item outcomes for batch operations that must not abort on one bad item.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ItemResult:
    """
    Outcome of processing one item of a batch.
    """

    key: str
    success: bool
    error: str | None = None

    @classmethod
    def ok(cls, key: str) -> ItemResult:
        return cls(key=key, success=True)

    @classmethod
    def failed(cls, key: str, error: str) -> ItemResult:
        return cls(key=key, success=False, error=error)


@dataclass
class BatchReport:
    """
    Collected item results. Callers decide whether failures matter.
    """

    items: list[ItemResult] = field(default_factory=list)

    def add(self, result: ItemResult) -> None:
        self.items.append(result)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.success)

    @property
    def failures(self) -> list[ItemResult]:
        return [item for item in self.items if not item.success]

    @property
    def failed(self) -> int:
        return len(self.failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [
                {"key": item.key, "error": item.error} for item in self.failures
            ],
        }
