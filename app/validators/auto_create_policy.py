"""
app/validators/auto_create_policy.py

Decides whether an unknown Campaign or Range may be created during import
and held for governance review.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.config import AutoCreateSettings
from app.domain.import_records import Severity, ValidationContext
from app.domain.master_data import MasterDataSnapshot, lookup_key
from db.base import EntityStatus

AUTO_CREATEABLE_TYPES: frozenset[str] = frozenset({"Campaign", "Range"})


class PolicyOutcome:
    ACCEPT = "accept"
    ACCEPT_WITH_WARNING = "accept_with_warning"
    REJECT = "reject"


@dataclass(frozen=True)
class PolicyDecision:
    """
    Outcome for one unknown reference, with the issue text to report.
    """

    outcome: str
    message: str | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome != PolicyOutcome.REJECT

    @property
    def severity(self) -> str | None:
        if self.outcome == PolicyOutcome.REJECT:
            return Severity.CRITICAL
        if self.outcome == PolicyOutcome.ACCEPT_WITH_WARNING:
            return Severity.WARNING
        return None


class AutoCreatePolicy:
    """
    Applies the auto-create rules in order; the first matching rule decides.
    """

    def __init__(self, *, settings: AutoCreateSettings) -> None:
        self._settings = settings
        self._enabled_types = frozenset(settings.entity_types) & AUTO_CREATEABLE_TYPES
        self._closed_cycles = frozenset(lookup_key(name) for name in settings.closed_cycles)
        self._open_cycles = (
            frozenset(lookup_key(name) for name in settings.open_cycles)
            if settings.open_cycles is not None
            else None
        )

    def evaluate(
        self,
        *,
        entity_type: str,
        name: str,
        context: ValidationContext,
        snapshot: MasterDataSnapshot,
        parent_valid: bool = True,
    ) -> PolicyDecision:
        """
        Evaluate one unknown `name` of `entity_type`.

        For a Campaign, `parent_valid` states whether the row's Range is
        present and usable (known or itself accepted for auto-create, and
        consistent with the row's Category).
        """

        label = entity_type.lower()

        if not self._settings.enabled or entity_type not in self._enabled_types:
            return PolicyDecision(
                PolicyOutcome.REJECT,
                f"Unknown {label} '{name}'. Auto-creation of {label}s is not enabled.",
            )

        governance = snapshot.governance_entry(entity_type, name)
        if governance is not None:
            if governance.status == EntityStatus.MERGED and governance.merged_into:
                return PolicyDecision(
                    PolicyOutcome.REJECT,
                    f"{entity_type} '{name}' was merged into '{governance.merged_into}'. "
                    f"Use '{governance.merged_into}' instead.",
                )
            return PolicyDecision(
                PolicyOutcome.REJECT,
                f"{entity_type} '{name}' has been {governance.status} and cannot be re-created.",
            )

        if self.is_cycle_closed(context.financial_cycle, snapshot):
            return PolicyDecision(
                PolicyOutcome.REJECT,
                f"Unknown {label} '{name}'. Financial cycle '{context.financial_cycle}' "
                "is closed for auto-creation.",
            )

        if entity_type == "Campaign" and not parent_valid:
            return PolicyDecision(
                PolicyOutcome.REJECT,
                f"Unknown campaign '{name}' cannot be auto-created without a valid range.",
            )

        if self._settings.warn_on_pending:
            return PolicyDecision(
                PolicyOutcome.ACCEPT_WITH_WARNING,
                f"{entity_type} '{name}' does not exist and will be auto-created for governance review.",
            )
        return PolicyDecision(PolicyOutcome.ACCEPT)

    def is_cycle_closed(self, cycle_name: str | None, snapshot: MasterDataSnapshot) -> bool:
        if cycle_name is None:
            return False
        key = lookup_key(cycle_name)
        if key in self._closed_cycles:
            return True
        cycle = snapshot.financial_cycle(cycle_name)
        if cycle is not None and cycle.is_closed:
            return True
        if self._open_cycles is not None and key not in self._open_cycles:
            return True
        return False
