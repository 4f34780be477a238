"""
db/models/advisor_mapping.py

Remembered spreadsheet-name -> user associations so that later uploads
naming the same advisor resolve without human review.
"""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class AdvisorMapping(Base, TimestampMixin):
    __tablename__ = "advisor_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    spreadsheet_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="Advisor name exactly as it appears in the Employee column",
    )

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index("ix_advisor_mappings_user_id", "user_id"),
        Index("ix_advisor_mappings_is_active", "is_active"),
    )
