"""
app/repositories package marker.
"""

from app.repositories.game_plan_repository import GamePlanRepository
from app.repositories.master_data_repository import MasterDataRepository

__all__ = [
    "GamePlanRepository",
    "MasterDataRepository",
]
