"""
db/models/field_mapping_rule.py

Spreadsheet header -> canonical field rules. Rows with a NULL market_id are the
global defaults; rows with a market_id override them for that market only.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class FieldMappingRule(Base, TimestampMixin):
    __tablename__ = "field_mapping_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    market_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    spreadsheet_header: Mapped[str] = mapped_column(String(255), nullable=False)
    canonical_field: Mapped[str] = mapped_column(String(100), nullable=False)
    value_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="number",
        comment="number, integer, percentage, text",
    )
    is_percentage: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint(
            "file_kind",
            "market_id",
            "canonical_field",
            name="uq_field_mapping_rules_kind_market_field",
        ),
        Index("ix_field_mapping_rules_kind_market", "file_kind", "market_id"),
    )
