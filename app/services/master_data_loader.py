"""
app/services/master_data_loader.py

Builds a MasterDataSnapshot from the reference tables.

All tables are read sequentially inside one read transaction so the
snapshot is consistent. A database failure aborts the load: a partial
snapshot would make every later validation result meaningless.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.master_data import (
    CountryInfo,
    FinancialCycleInfo,
    GovernanceEntry,
    MasterDataSnapshot,
)
from app.repositories.master_data_repository import MasterDataRepository
from db.base import EntityStatus
from db.models import Campaign, Range

logger = logging.getLogger(__name__)


class MasterDataLoadError(RuntimeError):
    """
    Raised when the reference tables cannot be read.
    """


def load_master_data(session: Session) -> MasterDataSnapshot:
    """
    Read every reference table and return an immutable snapshot.
    """

    repository = MasterDataRepository(session)
    try:
        with _read_transaction(session):
            sub_regions = repository.list_sub_region_names()
            countries = repository.list_countries()
            categories = repository.list_category_names()
            ranges = repository.list_range_names()
            category_pairs = repository.list_category_range_pairs()
            campaign_bindings = repository.list_campaign_bindings()
            media_types = repository.list_media_type_names()
            subtype_pairs = repository.list_media_subtype_pairs()
            business_units = repository.list_business_unit_names()
            pm_types = repository.list_pm_type_names()
            cycles = repository.list_financial_cycles()
            retired_ranges = repository.list_retired(Range)
            retired_campaigns = repository.list_retired(Campaign)
    except SQLAlchemyError as exc:
        logger.exception("Failed to load master data")
        raise MasterDataLoadError("Failed to load master data from the database.") from exc

    category_to_ranges: dict[str, list[str]] = {}
    for category, range_name in category_pairs:
        category_to_ranges.setdefault(category, []).append(range_name)

    campaign_to_range: dict[str, str | None] = {}
    for campaign, range_name, range_status in campaign_bindings:
        if range_name is not None and range_status not in EntityStatus.USABLE:
            logger.warning(
                "Dropping binding of campaign %r to %s range %r",
                campaign,
                range_status,
                range_name,
            )
            range_name = None
        campaign_to_range.setdefault(campaign, range_name)

    media_to_subtypes: dict[str, list[str]] = {}
    for media, subtype in subtype_pairs:
        media_to_subtypes.setdefault(media, []).append(subtype)

    usable_campaigns = {name for name, _range, _status in campaign_bindings}
    usable_ranges = set(ranges)
    governance = [
        GovernanceEntry(entity_type="Range", name=name, status=status, merged_into=target)
        for name, status, target in retired_ranges
        if name not in usable_ranges
    ] + [
        GovernanceEntry(entity_type="Campaign", name=name, status=status, merged_into=target)
        for name, status, target in retired_campaigns
        if name not in usable_campaigns
    ]

    snapshot = MasterDataSnapshot(
        countries=tuple(
            CountryInfo(name=name, sub_region=sub_region, cluster=cluster)
            for name, sub_region, cluster in countries
        ),
        sub_regions=tuple(sub_regions),
        categories=tuple(categories),
        ranges=tuple(dict.fromkeys(ranges)),
        category_to_ranges={key: tuple(value) for key, value in category_to_ranges.items()},
        campaigns=tuple(campaign_to_range.keys()),
        campaign_to_range=campaign_to_range,
        media_types=tuple(media_types),
        media_to_subtypes={key: tuple(value) for key, value in media_to_subtypes.items()},
        business_units=tuple(business_units),
        pm_types=tuple(pm_types),
        financial_cycles=tuple(
            FinancialCycleInfo(name=name, year=year, is_closed=is_closed) for name, year, is_closed in cycles
        ),
        governance=tuple(governance),
    )
    logger.info("Loaded master data snapshot: %s", snapshot.counts())
    return snapshot


@contextmanager
def _read_transaction(session: Session) -> Iterator[None]:
    opened = not session.in_transaction()
    if opened:
        session.begin()
    try:
        yield
    finally:
        if opened:
            session.rollback()
