"""
db/models/performance_record.py

One persisted performance fact keyed by the resolved market/store/advisor.
Foreign keys stay nullable: ignored entities leave their slot empty while the
raw row payload is still kept for traceability.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TimestampMixin


class PerformanceRecord(Base, TimestampMixin):
    __tablename__ = "performance_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    upload_date: Mapped[date] = mapped_column(Date, nullable=False)

    data_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="services, operations",
    )

    market_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("markets.id", ondelete="SET NULL"),
        nullable=True,
    )
    store_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("stores.id", ondelete="SET NULL"),
        nullable=True,
    )
    advisor_user_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    upload_session_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("upload_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )

    data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)

    __table_args__ = (
        Index("ix_performance_records_upload_date", "upload_date"),
        Index("ix_performance_records_store_date", "store_id", "upload_date"),
        Index("ix_performance_records_advisor_user_id", "advisor_user_id"),
        Index("ix_performance_records_upload_session_id", "upload_session_id"),
    )
