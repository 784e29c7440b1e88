"""
app/api/routers package marker.
"""

from app.api.routers.backups import router as backups_router
from app.api.routers.media_sufficiency import router as media_sufficiency_router

__all__ = [
    "backups_router",
    "media_sufficiency_router",
]
