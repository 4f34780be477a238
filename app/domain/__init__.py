"""
app/domain package marker.
"""

from app.domain.reconciliation import (
    AnnotatedEntities,
    ConfirmationDecisions,
    ConfirmationResult,
    DiscoveredEntities,
    DiscoveryResult,
    SessionSnapshot,
)
from app.domain.uploads import OperationsUpload, ServicesUpload, Upload, upload_from_raw_data

__all__ = [
    "AnnotatedEntities",
    "ConfirmationDecisions",
    "ConfirmationResult",
    "DiscoveredEntities",
    "DiscoveryResult",
    "OperationsUpload",
    "ServicesUpload",
    "SessionSnapshot",
    "Upload",
    "upload_from_raw_data",
]
