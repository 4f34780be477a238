"""
db/models/upload_session.py

Upload session model: one reviewable unit of reconciliation work spanning
discovery and confirmation.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import Date, DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class UploadFileType:
    SERVICES = "services"
    OPERATIONS = "operations"


class UploadSessionStatus:
    PENDING_REVIEW = "pending_review"
    PROCESSED = "processed"
    CANCELLED = "cancelled"


class UploadSession(Base, TimestampMixin):
    __tablename__ = "upload_sessions"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    filename: Mapped[str] = mapped_column(String(512), nullable=False)
    file_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="services, operations",
    )
    report_date: Mapped[date] = mapped_column(Date, nullable=False)
    uploaded_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    market_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Market id parsed from the filename",
    )
    discovered_markets: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    discovered_stores: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    discovered_advisors: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType, nullable=True)
    raw_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Parsed workbook rows replayed at confirmation time",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=UploadSessionStatus.PENDING_REVIEW,
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_upload_sessions_status", "status"),
        Index("ix_upload_sessions_created_at", "created_at"),
        Index("ix_upload_sessions_file_type_status", "file_type", "status"),
    )
