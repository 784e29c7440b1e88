"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database with seeded master data, and
an equivalent pure snapshot for validator tests that need no database.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 registers all ORM models on Base.metadata
from app.config import AutoCreateSettings, ImportValidationSettings
from app.domain.master_data import (
    CountryInfo,
    FinancialCycleInfo,
    GovernanceEntry,
    MasterDataSnapshot,
)
from app.validators.auto_create_policy import AutoCreatePolicy
from app.validators.record_validator import RecordValidator
from db.base import Base, EntityStatus
from db.models import (
    BusinessUnit,
    Campaign,
    Category,
    Country,
    FinancialCycle,
    GamePlan,
    MediaSubType,
    MediaType,
    PMType,
    Range,
    SubRegion,
)
from db.session import enable_sqlite_foreign_keys


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@dataclass
class SeededMasterData:
    """Primary keys of the seeded reference rows, by name."""

    ids: dict[str, int]

    def __getitem__(self, name: str) -> int:
        return self.ids[name]


@pytest.fixture()
def seeded(db_session: Session) -> SeededMasterData:
    """
    Reference graph used across service and API tests.

    Mexico and Guatemala sit in Central America, Colombia in North Andean.
    Elvive (Hair Care) and Revitalift (Skin Care) are active ranges;
    Old Range is archived and Fructis Legacy is merged into Elvive.
    ABP 2025 is open, ABP 2024 is closed.
    """

    central = SubRegion(name="Central America")
    andean = SubRegion(name="North Andean")
    mexico = Country(name="Mexico", sub_region=central, cluster="MCA")
    guatemala = Country(name="Guatemala", sub_region=central, cluster="MCA")
    colombia = Country(name="Colombia", sub_region=andean)

    hair = Category(name="Hair Care")
    skin = Category(name="Skin Care")
    elvive = Range(name="Elvive", categories=[hair])
    revitalift = Range(name="Revitalift", categories=[skin])
    old_range = Range(name="Old Range", status=EntityStatus.ARCHIVED, categories=[hair])
    fructis_legacy = Range(
        name="Fructis Legacy",
        status=EntityStatus.MERGED,
        merged_into=elvive,
        categories=[hair],
    )

    elvive_launch = Campaign(name="Elvive Launch", range=elvive)
    revitalift_on = Campaign(name="Revitalift Always On", range=revitalift)
    retired = Campaign(name="Retired Campaign", status=EntityStatus.ARCHIVED, range=elvive)

    tv = MediaType(name="TV")
    digital = MediaType(name="Digital")
    open_tv = MediaSubType(name="Open TV", media_type=tv)
    paid_tv = MediaSubType(name="Paid TV", media_type=tv)
    social = MediaSubType(name="Social", media_type=digital)
    search = MediaSubType(name="Search", media_type=digital)

    cpd = BusinessUnit(name="CPD")
    ldb = BusinessUnit(name="LDB")
    always_on = PMType(name="Always On")
    burst = PMType(name="Burst")

    abp_2025 = FinancialCycle(name="ABP 2025", year=2025, is_closed=False)
    abp_2024 = FinancialCycle(name="ABP 2024", year=2024, is_closed=True)

    rows = [
        central, andean, mexico, guatemala, colombia,
        hair, skin, elvive, revitalift, old_range, fructis_legacy,
        elvive_launch, revitalift_on, retired,
        tv, digital, open_tv, paid_tv, social, search,
        cpd, ldb, always_on, burst, abp_2025, abp_2024,
    ]
    db_session.add_all(rows)
    db_session.commit()

    return SeededMasterData(ids={row.name: row.id for row in rows})


def add_game_plans(
    db_session: Session,
    seeded: SeededMasterData,
    *,
    count: int,
    media_sub_type: str = "Open TV",
    country: str = "Mexico",
    financial_cycle: str = "ABP 2025",
    business_unit: str | None = "CPD",
) -> list[GamePlan]:
    plans = [
        GamePlan(
            campaign_id=seeded["Elvive Launch"],
            media_sub_type_id=seeded[media_sub_type],
            country_id=seeded[country],
            financial_cycle_id=seeded[financial_cycle],
            business_unit_id=seeded[business_unit] if business_unit else None,
            category_id=seeded["Hair Care"],
            range_id=seeded["Elvive"],
            burst=1,
            start_date=date(2025, 3, 1),
            end_date=date(2025, 3, 31),
            year=2025,
            total_budget=1000.0 + index,
            q1_budget=1000.0 + index,
            created_by="planner@example.com",
        )
        for index in range(count)
    ]
    db_session.add_all(plans)
    db_session.commit()
    return plans


# ---------------------------------------------------------------------------
# Pure snapshot and validator
# ---------------------------------------------------------------------------


@pytest.fixture()
def snapshot() -> MasterDataSnapshot:
    """Same reference graph as `seeded`, without a database."""

    return MasterDataSnapshot(
        countries=(
            CountryInfo("Colombia", "North Andean"),
            CountryInfo("Guatemala", "Central America", "MCA"),
            CountryInfo("Mexico", "Central America", "MCA"),
        ),
        sub_regions=("Central America", "North Andean"),
        categories=("Hair Care", "Skin Care"),
        ranges=("Elvive", "Revitalift"),
        category_to_ranges={"Hair Care": ("Elvive",), "Skin Care": ("Revitalift",)},
        campaigns=("Elvive Launch", "Revitalift Always On"),
        campaign_to_range={"Elvive Launch": "Elvive", "Revitalift Always On": "Revitalift"},
        media_types=("Digital", "TV"),
        media_to_subtypes={"Digital": ("Search", "Social"), "TV": ("Open TV", "Paid TV")},
        business_units=("CPD", "LDB"),
        pm_types=("Always On", "Burst"),
        financial_cycles=(
            FinancialCycleInfo("ABP 2024", 2024, True),
            FinancialCycleInfo("ABP 2025", 2025, False),
        ),
        governance=(
            GovernanceEntry("Range", "Old Range", EntityStatus.ARCHIVED),
            GovernanceEntry("Range", "Fructis Legacy", EntityStatus.MERGED, "Elvive"),
            GovernanceEntry("Campaign", "Retired Campaign", EntityStatus.ARCHIVED),
        ),
    )


def make_validator(
    *,
    validation: ImportValidationSettings | None = None,
    auto_create: AutoCreateSettings | None = None,
) -> RecordValidator:
    return RecordValidator(
        settings=validation or ImportValidationSettings(),
        policy=AutoCreatePolicy(settings=auto_create or AutoCreateSettings()),
    )


@pytest.fixture()
def validator() -> RecordValidator:
    return make_validator()


VALID_ROW: dict[str, str] = {
    "Year": "2025",
    "Sub Region": "Central America",
    "Country": "Mexico",
    "Category": "Hair Care",
    "Range": "Elvive",
    "Campaign": "Elvive Launch",
    "Media": "TV",
    "Media Subtype": "Open TV",
    "Start Date": "2025-03-01",
    "End Date": "2025-03-31",
    "Budget": "3,000",
    "Jan": "1000",
    "Feb": "1000",
    "Mar": "1000",
    "Burst": "1",
    "PM Type": "Always On",
    "Business Unit": "CPD",
    "Total TRPs": "250",
    "Total R1+ (%)": "65",
    "Total R3+ (%)": "0.4",
}


def row(**overrides: str) -> dict[str, str]:
    """A valid CSV row keyed by canonical header, with overrides applied."""

    values = dict(VALID_ROW)
    for key, value in overrides.items():
        values[key.replace("_", " ")] = value
    return values


def csv_bytes(rows: list[dict[str, str]]) -> bytes:
    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for item in rows:
        lines.append(",".join(_quote(item.get(header, "")) for header in headers))
    return ("\n".join(lines) + "\n").encode("utf-8")


def _quote(value: str) -> str:
    if any(ch in value for ch in ',"\n'):
        return '"' + value.replace('"', '""') + '"'
    return value
