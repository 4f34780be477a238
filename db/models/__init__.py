"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.advisor_mapping import AdvisorMapping
from db.models.assignment import UserMarketAssignment, UserStoreAssignment
from db.models.field_mapping_rule import FieldMappingRule
from db.models.market import Market
from db.models.performance_record import PerformanceRecord
from db.models.store import Store
from db.models.upload_session import UploadFileType, UploadSession, UploadSessionStatus
from db.models.user import User, UserRole, UserStatus

__all__ = [
    "Market",
    "Store",
    "User",
    "UserRole",
    "UserStatus",
    "AdvisorMapping",
    "UserStoreAssignment",
    "UserMarketAssignment",
    "FieldMappingRule",
    "UploadSession",
    "UploadFileType",
    "UploadSessionStatus",
    "PerformanceRecord",
]
