"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.game_plan import GamePlan
from db.models.master_data import (
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

__all__ = [
    "BusinessUnit",
    "Campaign",
    "Category",
    "Country",
    "FinancialCycle",
    "GamePlan",
    "MediaSubType",
    "MediaType",
    "PMType",
    "Range",
    "SubRegion",
    "category_ranges",
]
