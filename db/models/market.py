"""
db/models/market.py

Market model: top of the org chart. Stores belong to exactly one market.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.store import Store


class Market(Base, TimestampMixin):
    """
    A geographic/business market.

    Ids are integers because upload filenames carry a numeric market id
    that can be adopted as the primary key when the market is created.
    """

    __tablename__ = "markets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────────

    stores: Mapped[list["Store"]] = relationship(
        "Store",
        back_populates="market",
        passive_deletes=True,
    )

    # ── Indexes ────────────────────────────────────────────────────────────────

    __table_args__ = (Index("ix_markets_name", "name"),)

    def __repr__(self) -> str:
        return f"<Market id={self.id} name={self.name!r}>"
