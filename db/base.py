"""
db/base.py

Declarative base, timestamp columns and the governance lifecycle shared by
master-data models.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """created_at/updated_at columns; updated_at is refreshed on every UPDATE."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=_utcnow,
    )


class EntityStatus:
    """
    Governance lifecycle of master-data entities that imports may auto-create.

    Imports only ever write PENDING_REVIEW; the admin workflow owns the
    transitions to ACTIVE, ARCHIVED and MERGED.
    """

    PENDING_REVIEW = "pending_review"
    ACTIVE = "active"
    ARCHIVED = "archived"
    MERGED = "merged"

    ALL = frozenset({PENDING_REVIEW, ACTIVE, ARCHIVED, MERGED})
    USABLE = frozenset({PENDING_REVIEW, ACTIVE})


class GovernanceMixin:
    """
    Columns the governance workflow reads to review auto-created entities.
    """

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=EntityStatus.ACTIVE,
        server_default=EntityStatus.ACTIVE,
    )
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    original_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
