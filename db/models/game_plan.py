"""
db/models/game_plan.py

One planned media-campaign line item.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin
from db.models.master_data import (
    BusinessUnit,
    Campaign,
    Category,
    Country,
    FinancialCycle,
    MediaSubType,
    PMType,
    Range,
    SubRegion,
)


class GamePlan(Base, TimestampMixin):
    __tablename__ = "game_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(ForeignKey("campaigns.id"), nullable=False)
    media_sub_type_id: Mapped[int] = mapped_column(ForeignKey("media_sub_types.id"), nullable=False)
    pm_type_id: Mapped[int | None] = mapped_column(ForeignKey("pm_types.id"), nullable=True)
    country_id: Mapped[int] = mapped_column(ForeignKey("countries.id"), nullable=False)
    financial_cycle_id: Mapped[int] = mapped_column(ForeignKey("financial_cycles.id"), nullable=False)
    business_unit_id: Mapped[int | None] = mapped_column(ForeignKey("business_units.id"), nullable=True)
    sub_region_id: Mapped[int | None] = mapped_column(ForeignKey("sub_regions.id"), nullable=True)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("categories.id"), nullable=True)
    range_id: Mapped[int | None] = mapped_column(ForeignKey("ranges.id"), nullable=True)

    campaign_archetype: Mapped[str | None] = mapped_column(String(255), nullable=True)
    playbook_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    burst: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    total_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q1_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q2_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q3_budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    q4_budget: Mapped[float | None] = mapped_column(Float, nullable=True)

    trps: Mapped[float | None] = mapped_column(Float, nullable=True)
    reach_1_plus: Mapped[float | None] = mapped_column(Float, nullable=True)
    reach_3_plus: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_weeks: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_woa: Mapped[float | None] = mapped_column(Float, nullable=True)
    weeks_off_air: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    campaign: Mapped[Campaign] = relationship()
    media_sub_type: Mapped[MediaSubType] = relationship()
    pm_type: Mapped[PMType | None] = relationship()
    country: Mapped[Country] = relationship()
    financial_cycle: Mapped[FinancialCycle] = relationship()
    business_unit: Mapped[BusinessUnit | None] = relationship()
    sub_region: Mapped[SubRegion | None] = relationship()
    category: Mapped[Category | None] = relationship()
    range: Mapped[Range | None] = relationship()

    __table_args__ = (
        Index("ix_game_plans_scope", "country_id", "financial_cycle_id", "business_unit_id"),
        Index("ix_game_plans_campaign_id", "campaign_id"),
    )
