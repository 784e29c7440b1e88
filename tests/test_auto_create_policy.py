from __future__ import annotations

import unittest

from app.config import AutoCreateSettings
from app.domain.import_records import Severity, ValidationContext
from app.domain.master_data import FinancialCycleInfo, GovernanceEntry, MasterDataSnapshot
from app.validators.auto_create_policy import AutoCreatePolicy, PolicyOutcome
from db.base import EntityStatus


class TestAutoCreatePolicy(unittest.TestCase):
    def setUp(self) -> None:
        self.snapshot = MasterDataSnapshot(
            ranges=("Elvive",),
            financial_cycles=(
                FinancialCycleInfo("ABP 2025", 2025, False),
                FinancialCycleInfo("ABP 2023", 2023, True),
            ),
            governance=(
                GovernanceEntry("Range", "Old Range", EntityStatus.ARCHIVED),
                GovernanceEntry("Campaign", "Summer Push", EntityStatus.MERGED, "Summer Launch"),
            ),
        )
        self.context = ValidationContext(country="Mexico", financial_cycle="ABP 2025")
        self.policy = AutoCreatePolicy(settings=AutoCreateSettings())

    def test_accepts_with_warning_by_default(self) -> None:
        decision = self.policy.evaluate(
            entity_type="Range", name="Elvive Dream", context=self.context, snapshot=self.snapshot
        )

        self.assertEqual(decision.outcome, PolicyOutcome.ACCEPT_WITH_WARNING)
        self.assertTrue(decision.accepted)
        self.assertEqual(decision.severity, Severity.WARNING)

    def test_accepts_silently_when_pending_warning_is_off(self) -> None:
        policy = AutoCreatePolicy(settings=AutoCreateSettings(warn_on_pending=False))

        decision = policy.evaluate(
            entity_type="Campaign", name="New", context=self.context, snapshot=self.snapshot
        )

        self.assertEqual(decision.outcome, PolicyOutcome.ACCEPT)
        self.assertIsNone(decision.severity)

    def test_rejects_types_not_enabled(self) -> None:
        policy = AutoCreatePolicy(settings=AutoCreateSettings(entity_types=("Campaign",)))

        decision = policy.evaluate(
            entity_type="Range", name="Elvive Dream", context=self.context, snapshot=self.snapshot
        )

        self.assertEqual(decision.outcome, PolicyOutcome.REJECT)
        self.assertEqual(decision.severity, Severity.CRITICAL)

    def test_rejects_non_createable_types_even_if_configured(self) -> None:
        policy = AutoCreatePolicy(settings=AutoCreateSettings(entity_types=("Campaign", "Range", "Country")))

        decision = policy.evaluate(
            entity_type="Country", name="Atlantis", context=self.context, snapshot=self.snapshot
        )

        self.assertFalse(decision.accepted)

    def test_governance_rejection_precedes_closed_cycle(self) -> None:
        context = ValidationContext(country="Mexico", financial_cycle="ABP 2023")

        decision = self.policy.evaluate(
            entity_type="Campaign", name="summer push", context=context, snapshot=self.snapshot
        )

        self.assertEqual(decision.outcome, PolicyOutcome.REJECT)
        self.assertIn("merged into 'Summer Launch'", decision.message or "")

    def test_archived_name_is_rejected(self) -> None:
        decision = self.policy.evaluate(
            entity_type="Range", name="Old Range", context=self.context, snapshot=self.snapshot
        )

        self.assertIn("has been archived", decision.message or "")

    def test_campaign_needs_valid_parent(self) -> None:
        decision = self.policy.evaluate(
            entity_type="Campaign",
            name="New",
            context=self.context,
            snapshot=self.snapshot,
            parent_valid=False,
        )

        self.assertEqual(decision.outcome, PolicyOutcome.REJECT)
        self.assertIn("without a valid range", decision.message or "")

    def test_range_ignores_parent_flag(self) -> None:
        decision = self.policy.evaluate(
            entity_type="Range",
            name="New",
            context=self.context,
            snapshot=self.snapshot,
            parent_valid=False,
        )

        self.assertTrue(decision.accepted)


class TestClosedCycles(unittest.TestCase):
    def setUp(self) -> None:
        self.snapshot = MasterDataSnapshot(
            financial_cycles=(
                FinancialCycleInfo("ABP 2025", 2025, False),
                FinancialCycleInfo("ABP 2023", 2023, True),
            ),
        )

    def test_flagged_in_database(self) -> None:
        policy = AutoCreatePolicy(settings=AutoCreateSettings())

        self.assertTrue(policy.is_cycle_closed("abp 2023", self.snapshot))
        self.assertFalse(policy.is_cycle_closed("ABP 2025", self.snapshot))

    def test_listed_as_closed(self) -> None:
        policy = AutoCreatePolicy(settings=AutoCreateSettings(closed_cycles=("ABP 2025",)))

        self.assertTrue(policy.is_cycle_closed("ABP 2025", self.snapshot))

    def test_open_list_closes_everything_else(self) -> None:
        policy = AutoCreatePolicy(settings=AutoCreateSettings(open_cycles=("ABP 2026",)))

        self.assertTrue(policy.is_cycle_closed("ABP 2025", self.snapshot))
        self.assertFalse(policy.is_cycle_closed("ABP 2026", self.snapshot))

    def test_missing_cycle_is_not_closed(self) -> None:
        policy = AutoCreatePolicy(settings=AutoCreateSettings())

        self.assertFalse(policy.is_cycle_closed(None, self.snapshot))


if __name__ == "__main__":
    unittest.main()
