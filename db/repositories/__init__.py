"""
Repository layer exports.
"""

from db.repositories.errors import (
    ConfirmationError,
    ConfirmationPersistenceError,
    MissingMarketMappingError,
    ReconciliationError,
    SessionNotFoundError,
    SessionNotPendingError,
    UploadValidationError,
)
from db.repositories.organization_repository import OrganizationRepository
from db.repositories.performance_repository import PerformanceRecordRepository
from db.repositories.upload_session_repository import UploadSessionRepository

__all__ = [
    "OrganizationRepository",
    "PerformanceRecordRepository",
    "UploadSessionRepository",
    "ReconciliationError",
    "UploadValidationError",
    "SessionNotFoundError",
    "SessionNotPendingError",
    "ConfirmationError",
    "MissingMarketMappingError",
    "ConfirmationPersistenceError",
]
