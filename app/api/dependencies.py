"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import File, Header, HTTPException, UploadFile, status

from app.config import get_upload_settings

EXCEL_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
}


def _upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    stream = file.file
    position = stream.tell()
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(position)
    return size


def get_excel_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is an Excel workbook by extension or MIME
    type and that it fits the configured size limit.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").strip().lower()

    if not filename.endswith((".xlsx", ".xls")) and content_type not in EXCEL_CONTENT_TYPES:
        file.file.close()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "upload_invalid", "message": "Only Excel files are allowed."},
        )

    max_bytes = get_upload_settings().max_file_bytes
    if _upload_size(file) > max_bytes:
        file.file.close()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "code": "upload_invalid",
                "message": f"File exceeds the {max_bytes} byte upload limit.",
            },
        )

    return file


def get_uploaded_by(x_user_id: str | None = Header(default=None)) -> int | None:
    """
    Caller id from the ``X-User-Id`` header; non-numeric values are ignored.
    """

    if x_user_id is None:
        return None
    value = x_user_id.strip()
    return int(value) if value.isdigit() else None
