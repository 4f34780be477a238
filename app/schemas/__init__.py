"""
app/schemas package marker.
"""

from app.schemas.field_mappings import (
    FieldMappingItem,
    FieldMappingOverrideRequest,
    FieldSchemaResponse,
)
from app.schemas.uploads import (
    CancelSessionResponse,
    ConfirmationRequest,
    ConfirmationResponse,
    DiscoveryResponse,
    UploadSessionListResponse,
    UploadSessionResponse,
)

__all__ = [
    "CancelSessionResponse",
    "ConfirmationRequest",
    "ConfirmationResponse",
    "DiscoveryResponse",
    "FieldMappingItem",
    "FieldMappingOverrideRequest",
    "FieldSchemaResponse",
    "UploadSessionListResponse",
    "UploadSessionResponse",
]
