"""
app/services/game_plan_import_service.py

Replaces the game plans of one (country, financial cycle[, business unit])
scope with validated import records.

The scope is backed up first; a failed backup blocks the import. Deleting
the old rows, creating pending-review Campaigns/Ranges and inserting the
new rows happen in one transaction that is committed once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import AutoCreateSettings
from app.domain.import_records import ImportRecord, ValidationContext
from app.domain.results import BatchReport, ItemResult
from app.logging_utils import log_event
from app.mappers.header_mapper import MONTH_FIELDS
from app.repositories.game_plan_repository import GamePlanRepository
from app.repositories.master_data_repository import MasterDataRepository
from app.services.backup_service import GamePlanBackupService
from app.validators.value_parsers import parse_date, parse_number, parse_percentage
from db.models import (
    BusinessUnit,
    Campaign,
    Category,
    Country,
    FinancialCycle,
    GamePlan,
    PMType,
    Range,
    SubRegion,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ImportScopeError(ValueError):
    """
    Raised when the upload's country, cycle or business unit does not exist.
    """


class GamePlanPersistenceError(RuntimeError):
    """
    Raised when the replacement transaction fails and is rolled back.
    """


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass
class ImportReport:
    imported: int = 0
    deleted: int = 0
    rows: BatchReport = field(default_factory=BatchReport)
    auto_created_campaigns: list[str] = field(default_factory=list)
    auto_created_ranges: list[str] = field(default_factory=list)
    backup_file: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": self.imported,
            "deleted": self.deleted,
            "failed": self.rows.failed,
            "failures": self.rows.to_dict()["failures"],
            "auto_created_campaigns": list(self.auto_created_campaigns),
            "auto_created_ranges": list(self.auto_created_ranges),
            "backup_file": self.backup_file,
        }


@dataclass(frozen=True)
class _Scope:
    country: Country
    cycle: FinancialCycle
    business_unit: BusinessUnit | None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class GamePlanImportService:
    """
    Writes validated import records as game plans.
    """

    def __init__(
        self,
        *,
        backup_service: GamePlanBackupService,
        auto_create_settings: AutoCreateSettings,
    ) -> None:
        self._backup_service = backup_service
        self._auto_create = auto_create_settings

    def import_records(
        self,
        *,
        db: Session,
        records: Sequence[ImportRecord],
        context: ValidationContext,
        submitted_by: str,
        source_name: str,
    ) -> ImportReport:
        scope = self._resolve_scope(db, context)

        backup_path = self._backup_service.create_backup(
            db=db,
            country_id=scope.country.id,
            financial_cycle_id=scope.cycle.id,
            business_unit_id=scope.business_unit.id if scope.business_unit is not None else None,
            reason="import",
        )

        report = ImportReport(backup_file=backup_path.name)
        resolver = _ReferenceResolver(
            repository=MasterDataRepository(db),
            created_by=self._auto_create.created_by,
            notes=(
                f"Auto-created during import from {source_name} on "
                f"{datetime.now(timezone.utc).isoformat()}"
            ),
        )

        try:
            report.deleted = GamePlanRepository(db).delete_in_scope(
                country_id=scope.country.id,
                financial_cycle_id=scope.cycle.id,
                business_unit_id=scope.business_unit.id if scope.business_unit is not None else None,
            )

            plans: list[GamePlan] = []
            for row_index, record in enumerate(records):
                key = f"row {row_index + 1}"
                plan, problem = self._build_game_plan(record, scope, resolver, context, submitted_by)
                if plan is None:
                    report.rows.add(ItemResult.failed(key, problem or "Row could not be imported."))
                    continue
                plans.append(plan)
                report.rows.add(ItemResult.ok(key))

            report.imported = GamePlanRepository(db).add_all(plans)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            log_event(
                logger,
                logging.ERROR,
                "game_plan_import_failed",
                country=scope.country.name,
                financial_cycle=scope.cycle.name,
                backup_file=report.backup_file,
                error=str(exc),
            )
            raise GamePlanPersistenceError("Failed to replace game plans; no changes were saved.") from exc

        report.auto_created_campaigns = resolver.created_campaigns
        report.auto_created_ranges = resolver.created_ranges
        log_event(
            logger,
            logging.INFO,
            "game_plan_import_committed",
            country=scope.country.name,
            financial_cycle=scope.cycle.name,
            business_unit=scope.business_unit.name if scope.business_unit is not None else None,
            imported=report.imported,
            deleted=report.deleted,
            failed=report.rows.failed,
            auto_created_campaigns=len(report.auto_created_campaigns),
            auto_created_ranges=len(report.auto_created_ranges),
            backup_file=report.backup_file,
        )
        return report

    @staticmethod
    def _resolve_scope(db: Session, context: ValidationContext) -> _Scope:
        repository = MasterDataRepository(db)
        if not context.country or not context.financial_cycle:
            raise ImportScopeError("Country and financial cycle are required to import.")
        country = repository.find_by_name(Country, context.country)
        if country is None:
            raise ImportScopeError(f"Country '{context.country}' does not exist.")
        cycle = repository.find_by_name(FinancialCycle, context.financial_cycle)
        if cycle is None:
            raise ImportScopeError(f"Financial cycle '{context.financial_cycle}' does not exist.")
        business_unit = None
        if context.business_unit:
            business_unit = repository.find_by_name(BusinessUnit, context.business_unit)
            if business_unit is None:
                raise ImportScopeError(f"Business unit '{context.business_unit}' does not exist.")
        return _Scope(country=country, cycle=cycle, business_unit=business_unit)

    def _build_game_plan(
        self,
        record: ImportRecord,
        scope: _Scope,
        resolver: _ReferenceResolver,
        context: ValidationContext,
        submitted_by: str,
    ) -> tuple[GamePlan | None, str | None]:
        start = parse_date(record.start_date)
        end = parse_date(record.end_date)
        if start is None or end is None:
            return None, "Start and end dates are required."
        if record.campaign is None or record.media_subtype is None:
            return None, "Campaign and media subtype are required."

        category = resolver.find(Category, record.category)
        range_row = resolver.range(record.range, category) if record.range else None
        campaign = resolver.campaign(record.campaign, range_row)
        media_sub_type = resolver.repository.find_media_subtype(record.media, record.media_subtype)
        if media_sub_type is None:
            return None, f"Media subtype '{record.media_subtype}' does not exist."

        # A business-unit scoped import only ever writes plans back into that scope.
        business_unit = scope.business_unit or resolver.find(BusinessUnit, record.business_unit)
        sub_region = resolver.find(SubRegion, record.sub_region)
        if sub_region is None and scope.country.sub_region_id is not None:
            sub_region_id = scope.country.sub_region_id
        else:
            sub_region_id = sub_region.id if sub_region is not None else None

        months = [parse_number(getattr(record, spec.attribute)) for spec in MONTH_FIELDS]
        quarters = [
            _sum_or_none(months[offset:offset + 3]) for offset in range(0, 12, 3)
        ]
        total_budget = parse_number(record.budget)
        if total_budget is None:
            total_budget = _sum_or_none(months)

        year = _parse_year(record.year) or context.cycle_year or start.year
        burst = parse_number(record.burst)

        plan = GamePlan(
            campaign_id=campaign.id,
            media_sub_type_id=media_sub_type.id,
            pm_type_id=_id_of(resolver.find(PMType, record.pm_type)),
            country_id=scope.country.id,
            financial_cycle_id=scope.cycle.id,
            business_unit_id=_id_of(business_unit),
            sub_region_id=sub_region_id,
            category_id=_id_of(category),
            range_id=_id_of(range_row),
            campaign_archetype=record.campaign_archetype,
            playbook_id=record.playbook_id,
            burst=int(burst) if burst is not None and burst >= 1 else 1,
            start_date=start,
            end_date=end,
            year=year,
            total_budget=total_budget,
            q1_budget=quarters[0],
            q2_budget=quarters[1],
            q3_budget=quarters[2],
            q4_budget=quarters[3],
            trps=parse_number(record.total_trps),
            reach_1_plus=parse_percentage(record.total_r1_plus),
            reach_3_plus=parse_percentage(record.total_r3_plus),
            total_weeks=parse_number(record.total_weeks),
            total_woa=parse_number(record.total_woa),
            weeks_off_air=parse_number(record.total_woff),
            created_by=submitted_by,
        )
        resolver.touch(campaign)
        if range_row is not None:
            resolver.touch(range_row)
        return plan, None


class _ReferenceResolver:
    """
    Per-import cache of reference rows; creates pending-review Campaigns and
    Ranges the first time an unknown name is seen.
    """

    def __init__(self, *, repository: MasterDataRepository, created_by: str, notes: str) -> None:
        self.repository = repository
        self._created_by = created_by
        self._notes = notes
        self._cache: dict[tuple[type, str], Any] = {}
        self._created: set[int] = set()
        self.created_campaigns: list[str] = []
        self.created_ranges: list[str] = []

    def find(self, model: type, name: str | None) -> Any:
        if name is None:
            return None
        key = (model, name.strip().lower())
        if key not in self._cache:
            self._cache[key] = self.repository.find_by_name(model, name)
        return self._cache[key]

    def range(self, name: str, category: Category | None) -> Range:
        existing = self.find(Range, name)
        if existing is not None:
            return existing
        created = self.repository.create_pending_range(
            name=name.strip(),
            category=category,
            created_by=self._created_by,
            notes=self._notes,
        )
        self._cache[(Range, name.strip().lower())] = created
        self._created.add(id(created))
        self.created_ranges.append(created.name)
        return created

    def campaign(self, name: str, range_row: Range | None) -> Campaign:
        existing = self.find(Campaign, name)
        if existing is not None:
            return existing
        created = self.repository.create_pending_campaign(
            name=name.strip(),
            range_row=range_row,
            created_by=self._created_by,
            notes=self._notes,
        )
        self._cache[(Campaign, name.strip().lower())] = created
        self._created.add(id(created))
        self.created_campaigns.append(created.name)
        return created

    def touch(self, row: Campaign | Range) -> None:
        """
        Count one more game plan referencing an auto-created entity.
        """

        if id(row) in self._created:
            row.usage_count = (row.usage_count or 0) + 1


def _id_of(row: Any) -> int | None:
    return row.id if row is not None else None


def _sum_or_none(values: Sequence[float | None]) -> float | None:
    present = [value for value in values if value is not None]
    return sum(present) if present else None


def _parse_year(value: str | None) -> int | None:
    number = parse_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)
