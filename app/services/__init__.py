"""
app/services package marker.
"""

from app.services.confirmation_service import (
    UploadConfirmationService,
    get_upload_confirmation_service,
)
from app.services.upload_discovery_service import (
    UploadDiscoveryService,
    get_upload_discovery_service,
)
from app.services.upload_session_service import UploadSessionService, get_upload_session_service

__all__ = [
    "UploadConfirmationService",
    "get_upload_confirmation_service",
    "UploadDiscoveryService",
    "get_upload_discovery_service",
    "UploadSessionService",
    "get_upload_session_service",
]
