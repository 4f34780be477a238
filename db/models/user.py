"""
db/models/user.py

User accounts. Only the columns the upload pipeline reads or writes are modeled;
credentials live with the authentication layer.
"""

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class UserRole:
    ADMIN = "admin"
    MARKET_MANAGER = "marketManager"
    STORE_MANAGER = "storeManager"
    ADVISOR = "advisor"


class UserStatus:
    ACTIVE = "active"
    INACTIVE = "inactive"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    external_user_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        comment="Login/user identifier; generated for advisors created from uploads",
    )

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)

    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    role: Mapped[str] = mapped_column(String(32), nullable=False, default=UserRole.ADVISOR)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=UserStatus.ACTIVE)

    __table_args__ = (
        Index("ix_users_role", "role"),
        Index("ix_users_name", "first_name", "last_name"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User id={self.id} name={self.full_name!r} role={self.role!r}>"
