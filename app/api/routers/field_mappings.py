"""
app/api/routers/field_mappings.py

Field-mapping configuration endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.repositories.field_mapping_repository import FieldMappingRepository
from app.schemas.field_mappings import FieldMappingOverrideRequest, FieldSchemaResponse
from db.models.upload_session import UploadFileType
from db.session import get_db

router = APIRouter(prefix="/field-mappings", tags=["field-mappings"])

_FILE_KINDS = (UploadFileType.SERVICES, UploadFileType.OPERATIONS)


def _check_file_kind(file_kind: str) -> str:
    normalized = file_kind.strip().lower()
    if normalized not in _FILE_KINDS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown file kind '{file_kind}'. Expected one of: {', '.join(_FILE_KINDS)}.",
        )
    return normalized


@router.get("/{file_kind}", response_model=FieldSchemaResponse)
def get_field_mappings(
    file_kind: str,
    market_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> FieldSchemaResponse:
    """
    Effective schema for ``file_kind``, with market overrides when requested.
    """

    kind = _check_file_kind(file_kind)
    schema = FieldMappingRepository(db).get_effective_schema(file_kind=kind, market_id=market_id)
    return FieldSchemaResponse.from_schema(schema, market_id)


@router.put("/{file_kind}/{market_id}", response_model=FieldSchemaResponse)
def put_market_overrides(
    file_kind: str,
    market_id: int,
    payload: FieldMappingOverrideRequest,
    db: Session = Depends(get_db),
) -> FieldSchemaResponse:
    kind = _check_file_kind(file_kind)
    repository = FieldMappingRepository(db)
    try:
        repository.save_market_overrides(
            file_kind=kind,
            market_id=market_id,
            mappings=[item.to_field_mapping() for item in payload.mappings],
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to save field mapping overrides.",
        ) from exc

    schema = repository.get_effective_schema(file_kind=kind, market_id=market_id)
    return FieldSchemaResponse.from_schema(schema, market_id)
