"""
db/models/master_data.py

Relational reference graph that import rows are validated against.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String, Table, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, GovernanceMixin, TimestampMixin

category_ranges = Table(
    "category_ranges",
    Base.metadata,
    Column("category_id", ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
    Column("range_id", ForeignKey("ranges.id", ondelete="CASCADE"), primary_key=True),
)


class SubRegion(Base, TimestampMixin):
    __tablename__ = "sub_regions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    countries: Mapped[list["Country"]] = relationship(back_populates="sub_region")


class Country(Base, TimestampMixin):
    __tablename__ = "countries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    sub_region_id: Mapped[int | None] = mapped_column(
        ForeignKey("sub_regions.id", ondelete="SET NULL"),
        nullable=True,
    )
    cluster: Mapped[str | None] = mapped_column(String(255), nullable=True)

    sub_region: Mapped[SubRegion | None] = relationship(back_populates="countries")


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    ranges: Mapped[list["Range"]] = relationship(
        secondary=category_ranges,
        back_populates="categories",
    )


class Range(Base, TimestampMixin, GovernanceMixin):
    __tablename__ = "ranges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    merged_into_id: Mapped[int | None] = mapped_column(
        ForeignKey("ranges.id", ondelete="SET NULL"),
        nullable=True,
    )

    categories: Mapped[list[Category]] = relationship(
        secondary=category_ranges,
        back_populates="ranges",
    )
    campaigns: Mapped[list["Campaign"]] = relationship(
        back_populates="range",
        foreign_keys="Campaign.range_id",
    )
    merged_into: Mapped["Range | None"] = relationship(remote_side=[id])

    __table_args__ = (
        Index("ix_ranges_name", "name"),
        Index("ix_ranges_status", "status"),
    )


class Campaign(Base, TimestampMixin, GovernanceMixin):
    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    range_id: Mapped[int | None] = mapped_column(
        ForeignKey("ranges.id", ondelete="SET NULL"),
        nullable=True,
    )
    merged_into_id: Mapped[int | None] = mapped_column(
        ForeignKey("campaigns.id", ondelete="SET NULL"),
        nullable=True,
    )

    range: Mapped[Range | None] = relationship(back_populates="campaigns", foreign_keys=[range_id])
    merged_into: Mapped["Campaign | None"] = relationship(remote_side=[id])

    __table_args__ = (
        Index("ix_campaigns_name", "name"),
        Index("ix_campaigns_status", "status"),
    )


class MediaType(Base, TimestampMixin):
    __tablename__ = "media_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    sub_types: Mapped[list["MediaSubType"]] = relationship(back_populates="media_type")


class MediaSubType(Base, TimestampMixin):
    __tablename__ = "media_sub_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    media_type_id: Mapped[int] = mapped_column(
        ForeignKey("media_types.id", ondelete="CASCADE"),
        nullable=False,
    )

    media_type: Mapped[MediaType] = relationship(back_populates="sub_types")

    __table_args__ = (
        UniqueConstraint("name", "media_type_id", name="uq_media_sub_types_name_media_type"),
    )


class BusinessUnit(Base, TimestampMixin):
    __tablename__ = "business_units"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


class PMType(Base, TimestampMixin):
    __tablename__ = "pm_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)


class FinancialCycle(Base, TimestampMixin):
    """
    A named reporting period (e.g. "ABP 2025") scoping game-plan imports.
    """

    __tablename__ = "financial_cycles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_closed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
