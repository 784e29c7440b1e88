"""
app/repositories/game_plan_repository.py

Persistence layer for game-plan rows scoped by country, cycle and
business unit.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, joinedload

from db.models import GamePlan


class GamePlanRepository:
    """
    Repository for scoped reads, deletes and inserts of game plans.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @staticmethod
    def _scope_filters(
        country_id: int,
        financial_cycle_id: int,
        business_unit_id: int | None,
    ) -> list:
        filters = [
            GamePlan.country_id == country_id,
            GamePlan.financial_cycle_id == financial_cycle_id,
        ]
        if business_unit_id is not None:
            filters.append(GamePlan.business_unit_id == business_unit_id)
        return filters

    def list_in_scope(
        self,
        *,
        country_id: int,
        financial_cycle_id: int,
        business_unit_id: int | None = None,
    ) -> list[GamePlan]:
        """
        Return scoped rows with their lookups eagerly loaded.
        """

        stmt = (
            select(GamePlan)
            .where(*self._scope_filters(country_id, financial_cycle_id, business_unit_id))
            .options(
                joinedload(GamePlan.campaign),
                joinedload(GamePlan.media_sub_type),
                joinedload(GamePlan.pm_type),
                joinedload(GamePlan.business_unit),
                joinedload(GamePlan.category),
                joinedload(GamePlan.range),
                joinedload(GamePlan.sub_region),
            )
            .order_by(GamePlan.id)
        )
        return list(self._session.scalars(stmt).unique())

    def delete_in_scope(
        self,
        *,
        country_id: int,
        financial_cycle_id: int,
        business_unit_id: int | None = None,
    ) -> int:
        stmt = delete(GamePlan).where(*self._scope_filters(country_id, financial_cycle_id, business_unit_id))
        result = self._session.execute(stmt)
        return int(result.rowcount or 0)

    def add_all(self, rows: Sequence[GamePlan]) -> int:
        if not rows:
            return 0
        self._session.add_all(list(rows))
        self._session.flush()
        return len(rows)

    def count(self) -> int:
        return len(list(self._session.scalars(select(GamePlan.id))))
