"""
app/repositories package marker.
"""

from app.repositories.field_mapping_repository import FieldMappingRepository

__all__ = [
    "FieldMappingRepository",
]
