"""
app/api/routers/uploads.py

Upload discovery, review, and confirmation HTTP endpoints.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status

from app.api.dependencies import get_excel_upload, get_uploaded_by
from app.schemas.uploads import (
    CancelSessionResponse,
    ConfirmationRequest,
    ConfirmationResponse,
    DiscoveryResponse,
    UploadSessionListResponse,
    UploadSessionResponse,
    UploadSessionSummaryResponse,
)
from app.services.confirmation_service import (
    UploadConfirmationService,
    get_upload_confirmation_service,
)
from app.services.upload_discovery_service import (
    UploadDiscoveryService,
    get_upload_discovery_service,
)
from app.services.upload_session_service import UploadSessionService, get_upload_session_service
from db.models.upload_session import UploadFileType
from db.repositories.errors import (
    ConfirmationError,
    ConfirmationPersistenceError,
    ReconciliationError,
    SessionNotFoundError,
    SessionNotPendingError,
    UploadValidationError,
)

router = APIRouter(prefix="/uploads", tags=["uploads"])


def _http_error(exc: ReconciliationError) -> HTTPException:
    if isinstance(exc, UploadValidationError):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, SessionNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, SessionNotPendingError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ConfirmationError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, ConfirmationPersistenceError):
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=exc.to_dict())


def _discover(
    service: UploadDiscoveryService,
    file: UploadFile,
    file_kind: str,
    uploaded_by: int | None,
) -> DiscoveryResponse:
    discover = (
        service.discover_services
        if file_kind == UploadFileType.SERVICES
        else service.discover_operations
    )
    try:
        result = discover(
            filename=file.filename or "",
            source=file.file,
            uploaded_by=uploaded_by,
        )
    except ReconciliationError as exc:
        raise _http_error(exc) from exc
    finally:
        file.file.close()
    return DiscoveryResponse.from_result(result)


@router.post("/services/discover", response_model=DiscoveryResponse)
def discover_services_upload(
    file: UploadFile = Depends(get_excel_upload),
    uploaded_by: int | None = Depends(get_uploaded_by),
    service: UploadDiscoveryService = Depends(get_upload_discovery_service),
) -> DiscoveryResponse:
    """
    Parse a services workbook and open a review session.
    """

    return _discover(service, file, UploadFileType.SERVICES, uploaded_by)


@router.post("/operations/discover", response_model=DiscoveryResponse)
def discover_operations_upload(
    file: UploadFile = Depends(get_excel_upload),
    uploaded_by: int | None = Depends(get_uploaded_by),
    service: UploadDiscoveryService = Depends(get_upload_discovery_service),
) -> DiscoveryResponse:
    """
    Parse an operations workbook and open a review session.
    """

    return _discover(service, file, UploadFileType.OPERATIONS, uploaded_by)


@router.post("/sessions/{session_id}/confirm", response_model=ConfirmationResponse)
def confirm_session(
    session_id: uuid.UUID,
    payload: ConfirmationRequest,
    service: UploadConfirmationService = Depends(get_upload_confirmation_service),
) -> ConfirmationResponse:
    """
    Commit reviewed decisions for a pending session in one transaction.
    """

    try:
        result = service.confirm(session_id, payload.to_decisions())
    except ReconciliationError as exc:
        raise _http_error(exc) from exc
    return ConfirmationResponse.from_result(result)


@router.get("/sessions/{session_id}", response_model=UploadSessionResponse)
def get_session(
    session_id: uuid.UUID,
    service: UploadSessionService = Depends(get_upload_session_service),
) -> UploadSessionResponse:
    try:
        snapshot = service.get(session_id)
    except ReconciliationError as exc:
        raise _http_error(exc) from exc
    return UploadSessionResponse.from_snapshot(snapshot)


@router.get("/sessions", response_model=UploadSessionListResponse)
def list_sessions(
    status_filter: str | None = Query(default=None, alias="status"),
    file_type: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    service: UploadSessionService = Depends(get_upload_session_service),
) -> UploadSessionListResponse:
    snapshots = service.list_sessions(status=status_filter, file_type=file_type, limit=limit)
    return UploadSessionListResponse(
        sessions=[UploadSessionSummaryResponse.from_snapshot(item) for item in snapshots],
    )


@router.delete("/sessions/{session_id}", response_model=CancelSessionResponse)
def cancel_session(
    session_id: uuid.UUID,
    service: UploadSessionService = Depends(get_upload_session_service),
) -> CancelSessionResponse:
    """
    Cancel a pending session; terminal or unknown sessions yield 404.
    """

    if service.cancel(session_id) == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "code": "session_not_pending",
                "message": "No pending upload session found.",
                "context": {"session_id": str(session_id)},
            },
        )
    return CancelSessionResponse(session_id=session_id)
