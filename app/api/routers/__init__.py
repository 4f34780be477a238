"""
app/api/routers package marker.
"""

from app.api.routers.field_mappings import router as field_mappings_router
from app.api.routers.uploads import router as uploads_router

__all__ = [
    "field_mappings_router",
    "uploads_router",
]
