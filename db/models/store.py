"""
db/models/store.py

Store model: one shop location, scoped to a market.
"""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.market import Market


class Store(Base, TimestampMixin):
    """
    Represents one store.

    Two stores may share a name as long as they live in different markets.
    """

    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    market_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("markets.id", ondelete="RESTRICT"),
        nullable=False,
    )

    store_code: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Store identifier as written in the spreadsheet ID column",
    )

    market: Mapped["Market"] = relationship("Market", back_populates="stores")

    __table_args__ = (
        Index("ix_stores_market_id", "market_id"),
        Index("ix_stores_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r} market_id={self.market_id}>"
