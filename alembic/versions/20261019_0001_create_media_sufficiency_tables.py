"""create master data and game plan tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _governance() -> list[sa.Column]:
    return [
        sa.Column("status", sa.String(length=32), server_default="active", nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        sa.Column("original_name", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("usage_count", sa.Integer(), server_default="0", nullable=False),
    ]


def _named_table(table_name: str) -> None:
    op.create_table(
        table_name,
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )


def upgrade() -> None:
    _named_table("sub_regions")
    _named_table("categories")
    _named_table("media_types")
    _named_table("business_units")
    _named_table("pm_types")

    op.create_table(
        "countries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sub_region_id", sa.Integer(), nullable=True),
        sa.Column("cluster", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["sub_region_id"], ["sub_regions.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "financial_cycles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("is_closed", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "media_sub_types",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("media_type_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["media_type_id"], ["media_types.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "media_type_id", name="uq_media_sub_types_name_media_type"),
    )

    op.create_table(
        "ranges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("merged_into_id", sa.Integer(), nullable=True),
        *_governance(),
        *_timestamps(),
        sa.ForeignKeyConstraint(["merged_into_id"], ["ranges.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ranges_name", "ranges", ["name"], unique=False)
    op.create_index("ix_ranges_status", "ranges", ["status"], unique=False)

    op.create_table(
        "category_ranges",
        sa.Column("category_id", sa.Integer(), nullable=False),
        sa.Column("range_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["range_id"], ["ranges.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("category_id", "range_id"),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("range_id", sa.Integer(), nullable=True),
        sa.Column("merged_into_id", sa.Integer(), nullable=True),
        *_governance(),
        *_timestamps(),
        sa.ForeignKeyConstraint(["range_id"], ["ranges.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["merged_into_id"], ["campaigns.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_campaigns_name", "campaigns", ["name"], unique=False)
    op.create_index("ix_campaigns_status", "campaigns", ["status"], unique=False)

    op.create_table(
        "game_plans",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("campaign_id", sa.Integer(), nullable=False),
        sa.Column("media_sub_type_id", sa.Integer(), nullable=False),
        sa.Column("pm_type_id", sa.Integer(), nullable=True),
        sa.Column("country_id", sa.Integer(), nullable=False),
        sa.Column("financial_cycle_id", sa.Integer(), nullable=False),
        sa.Column("business_unit_id", sa.Integer(), nullable=True),
        sa.Column("sub_region_id", sa.Integer(), nullable=True),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("range_id", sa.Integer(), nullable=True),
        sa.Column("campaign_archetype", sa.String(length=255), nullable=True),
        sa.Column("playbook_id", sa.String(length=255), nullable=True),
        sa.Column("burst", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("total_budget", sa.Float(), nullable=True),
        sa.Column("q1_budget", sa.Float(), nullable=True),
        sa.Column("q2_budget", sa.Float(), nullable=True),
        sa.Column("q3_budget", sa.Float(), nullable=True),
        sa.Column("q4_budget", sa.Float(), nullable=True),
        sa.Column("trps", sa.Float(), nullable=True),
        sa.Column("reach_1_plus", sa.Float(), nullable=True),
        sa.Column("reach_3_plus", sa.Float(), nullable=True),
        sa.Column("total_weeks", sa.Float(), nullable=True),
        sa.Column("total_woa", sa.Float(), nullable=True),
        sa.Column("weeks_off_air", sa.Float(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["campaign_id"], ["campaigns.id"]),
        sa.ForeignKeyConstraint(["media_sub_type_id"], ["media_sub_types.id"]),
        sa.ForeignKeyConstraint(["pm_type_id"], ["pm_types.id"]),
        sa.ForeignKeyConstraint(["country_id"], ["countries.id"]),
        sa.ForeignKeyConstraint(["financial_cycle_id"], ["financial_cycles.id"]),
        sa.ForeignKeyConstraint(["business_unit_id"], ["business_units.id"]),
        sa.ForeignKeyConstraint(["sub_region_id"], ["sub_regions.id"]),
        sa.ForeignKeyConstraint(["category_id"], ["categories.id"]),
        sa.ForeignKeyConstraint(["range_id"], ["ranges.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_game_plans_scope",
        "game_plans",
        ["country_id", "financial_cycle_id", "business_unit_id"],
        unique=False,
    )
    op.create_index("ix_game_plans_campaign_id", "game_plans", ["campaign_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_game_plans_campaign_id", table_name="game_plans")
    op.drop_index("ix_game_plans_scope", table_name="game_plans")
    op.drop_table("game_plans")
    op.drop_index("ix_campaigns_status", table_name="campaigns")
    op.drop_index("ix_campaigns_name", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_table("category_ranges")
    op.drop_index("ix_ranges_status", table_name="ranges")
    op.drop_index("ix_ranges_name", table_name="ranges")
    op.drop_table("ranges")
    op.drop_table("media_sub_types")
    op.drop_table("financial_cycles")
    op.drop_table("countries")
    for table_name in ("pm_types", "business_units", "media_types", "categories", "sub_regions"):
        op.drop_table(table_name)
