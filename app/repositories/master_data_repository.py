"""
app/repositories/master_data_repository.py

Read and write access to the master-data reference tables.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased

from db.base import EntityStatus
from db.models import (
    BusinessUnit,
    Campaign,
    Category,
    Country,
    FinancialCycle,
    MediaSubType,
    MediaType,
    PMType,
    Range,
    SubRegion,
    category_ranges,
)

ModelT = TypeVar("ModelT")


class MasterDataRepository:
    """
    Repository for master-data lookups used by validation and import.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Snapshot reads
    # ------------------------------------------------------------------

    def list_sub_region_names(self) -> list[str]:
        return list(self._session.scalars(select(SubRegion.name).order_by(SubRegion.name)))

    def list_countries(self) -> list[tuple[str, str | None, str | None]]:
        """
        Return (country, sub_region, cluster) triples.
        """

        stmt = (
            select(Country.name, SubRegion.name, Country.cluster)
            .outerjoin(SubRegion, Country.sub_region_id == SubRegion.id)
            .order_by(Country.name)
        )
        return [(row[0], row[1], row[2]) for row in self._session.execute(stmt)]

    def list_category_names(self) -> list[str]:
        return list(self._session.scalars(select(Category.name).order_by(Category.name)))

    def list_range_names(self, statuses: Iterable[str] = EntityStatus.USABLE) -> list[str]:
        stmt = select(Range.name).where(Range.status.in_(list(statuses))).order_by(Range.name)
        return list(self._session.scalars(stmt))

    def list_category_range_pairs(self, statuses: Iterable[str] = EntityStatus.USABLE) -> list[tuple[str, str]]:
        stmt = (
            select(Category.name, Range.name)
            .join(category_ranges, category_ranges.c.category_id == Category.id)
            .join(Range, category_ranges.c.range_id == Range.id)
            .where(Range.status.in_(list(statuses)))
            .order_by(Category.name, Range.name)
        )
        return [(row[0], row[1]) for row in self._session.execute(stmt)]

    def list_campaign_bindings(self, statuses: Iterable[str] = EntityStatus.USABLE) -> list[tuple[str, str | None, str | None]]:
        """
        Return (campaign, range name, range status) for usable campaigns.
        """

        stmt = (
            select(Campaign.name, Range.name, Range.status)
            .outerjoin(Range, Campaign.range_id == Range.id)
            .where(Campaign.status.in_(list(statuses)))
            .order_by(Campaign.name)
        )
        return [(row[0], row[1], row[2]) for row in self._session.execute(stmt)]

    def list_media_type_names(self) -> list[str]:
        return list(self._session.scalars(select(MediaType.name).order_by(MediaType.name)))

    def list_media_subtype_pairs(self) -> list[tuple[str, str]]:
        """
        Return (media type, subtype) pairs.
        """

        stmt = (
            select(MediaType.name, MediaSubType.name)
            .join(MediaSubType, MediaSubType.media_type_id == MediaType.id)
            .order_by(MediaType.name, MediaSubType.name)
        )
        return [(row[0], row[1]) for row in self._session.execute(stmt)]

    def list_business_unit_names(self) -> list[str]:
        return list(self._session.scalars(select(BusinessUnit.name).order_by(BusinessUnit.name)))

    def list_pm_type_names(self) -> list[str]:
        return list(self._session.scalars(select(PMType.name).order_by(PMType.name)))

    def list_financial_cycles(self) -> list[tuple[str, int | None, bool]]:
        stmt = select(FinancialCycle.name, FinancialCycle.year, FinancialCycle.is_closed).order_by(
            FinancialCycle.name
        )
        return [(row[0], row[1], bool(row[2])) for row in self._session.execute(stmt)]

    def list_retired(self, model: type[Range] | type[Campaign]) -> list[tuple[str, str, str | None]]:
        """
        Return (name, status, merge target name) for archived or merged rows.
        """

        target = aliased(model)
        stmt = (
            select(model.name, model.status, target.name)
            .outerjoin(target, model.merged_into_id == target.id)
            .where(model.status.in_([EntityStatus.ARCHIVED, EntityStatus.MERGED]))
            .order_by(model.name)
        )
        return [(row[0], row[1], row[2]) for row in self._session.execute(stmt)]

    # ------------------------------------------------------------------
    # Name lookups
    # ------------------------------------------------------------------

    def find_by_name(self, model: type[ModelT], name: str) -> ModelT | None:
        """
        Case-insensitive lookup by `name`; usable governance states only for
        models that carry a status column.
        """

        stmt = select(model).where(func.lower(model.name) == name.strip().lower())
        if hasattr(model, "status"):
            stmt = stmt.where(model.status.in_(list(EntityStatus.USABLE)))
        return self._session.scalars(stmt.order_by(model.id).limit(1)).first()

    def find_media_subtype(self, media_name: str | None, subtype_name: str) -> MediaSubType | None:
        stmt = select(MediaSubType).where(func.lower(MediaSubType.name) == subtype_name.strip().lower())
        if media_name is not None:
            stmt = stmt.join(MediaType, MediaSubType.media_type_id == MediaType.id).where(
                func.lower(MediaType.name) == media_name.strip().lower()
            )
        return self._session.scalars(stmt.order_by(MediaSubType.id).limit(1)).first()

    def existing_ids(self, model: type[ModelT], ids: Sequence[int]) -> set[int]:
        if not ids:
            return set()
        return set(self._session.scalars(select(model.id).where(model.id.in_(list(ids)))))

    # ------------------------------------------------------------------
    # Governance writes
    # ------------------------------------------------------------------

    def create_pending_range(
        self,
        *,
        name: str,
        category: Category | None,
        created_by: str,
        notes: str,
    ) -> Range:
        range_row = Range(
            name=name,
            status=EntityStatus.PENDING_REVIEW,
            created_by=created_by,
            original_name=name,
            notes=notes,
            usage_count=0,
        )
        if category is not None:
            range_row.categories.append(category)
        self._session.add(range_row)
        self._session.flush()
        return range_row

    def create_pending_campaign(
        self,
        *,
        name: str,
        range_row: Range | None,
        created_by: str,
        notes: str,
    ) -> Campaign:
        campaign = Campaign(
            name=name,
            range_id=range_row.id if range_row is not None else None,
            status=EntityStatus.PENDING_REVIEW,
            created_by=created_by,
            original_name=name,
            notes=notes,
            usage_count=0,
        )
        self._session.add(campaign)
        self._session.flush()
        return campaign
