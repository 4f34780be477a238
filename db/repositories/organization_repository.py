"""
Repository for the org chart the upload pipeline reconciles against:
markets, stores, advisor users, remembered advisor names, and assignments.

Writes only flush; the owning service controls the transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from db.models.advisor_mapping import AdvisorMapping
from db.models.assignment import UserMarketAssignment, UserStoreAssignment
from db.models.market import Market
from db.models.store import Store
from db.models.user import User, UserRole, UserStatus


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class OrganizationRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_markets(self) -> list[Market]:
        stmt = select(Market).order_by(Market.name, Market.id)
        return list(self._session.scalars(stmt).all())

    def list_stores(self) -> list[Store]:
        stmt = select(Store).order_by(Store.name, Store.id)
        return list(self._session.scalars(stmt).all())

    def list_advisors(self) -> list[User]:
        stmt = (
            select(User)
            .where(User.role == UserRole.ADVISOR)
            .order_by(User.first_name, User.last_name, User.id)
        )
        return list(self._session.scalars(stmt).all())

    def list_active_advisor_mappings(self) -> list[tuple[AdvisorMapping, User | None]]:
        stmt = (
            select(AdvisorMapping, User)
            .join(User, AdvisorMapping.user_id == User.id, isouter=True)
            .where(AdvisorMapping.is_active.is_(True))
            .order_by(AdvisorMapping.spreadsheet_name)
        )
        return [(mapping, user) for mapping, user in self._session.execute(stmt).all()]

    def get_market(self, market_id: int) -> Market | None:
        return self._session.get(Market, market_id)

    # ------------------------------------------------------------------
    # Inserts
    # ------------------------------------------------------------------

    def insert_market(
        self,
        *,
        name: str,
        description: str | None = None,
        market_id: int | None = None,
    ) -> Market:
        """
        Insert one market. ``market_id`` adopts an explicit primary key; the
        caller is responsible for checking that it is free.
        """

        market = Market(name=name, description=description)
        if market_id is not None:
            market.id = market_id
        self._session.add(market)
        self._session.flush()
        if market_id is not None:
            self._advance_id_sequence(Market.__tablename__)
        return market

    def insert_store(
        self,
        *,
        name: str,
        market_id: int,
        store_code: str | None = None,
    ) -> Store:
        store = Store(name=name, market_id=market_id, store_code=store_code)
        self._session.add(store)
        self._session.flush()
        return store

    def insert_advisor_user(
        self,
        *,
        external_user_id: str,
        first_name: str,
        last_name: str,
        email: str | None,
    ) -> User:
        user = User(
            external_user_id=external_user_id,
            first_name=first_name,
            last_name=last_name,
            email=email,
            role=UserRole.ADVISOR,
            status=UserStatus.ACTIVE,
        )
        self._session.add(user)
        self._session.flush()
        return user

    # ------------------------------------------------------------------
    # Idempotent writes
    # ------------------------------------------------------------------

    def upsert_advisor_mapping(self, *, spreadsheet_name: str, user_id: int) -> None:
        """
        Remember ``spreadsheet_name -> user_id``; an existing row is re-pointed
        and re-activated.
        """

        now = _now_utc()
        insert = self._insert_for(AdvisorMapping)
        stmt = insert.values(
            spreadsheet_name=spreadsheet_name,
            user_id=user_id,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["spreadsheet_name"],
            set_={
                "user_id": stmt.excluded.user_id,
                "is_active": True,
                "updated_at": now,
            },
        )
        self._session.execute(stmt)

    def assign_user_to_store(self, *, user_id: int, store_id: int) -> None:
        self._insert_ignore(
            UserStoreAssignment,
            {"user_id": user_id, "store_id": store_id, "assigned_at": _now_utc()},
            index_elements=["user_id", "store_id"],
        )

    def assign_user_to_market(self, *, user_id: int, market_id: int) -> None:
        self._insert_ignore(
            UserMarketAssignment,
            {"user_id": user_id, "market_id": market_id, "assigned_at": _now_utc()},
            index_elements=["user_id", "market_id"],
        )

    # ------------------------------------------------------------------
    # Dialect helpers
    # ------------------------------------------------------------------

    def _dialect_name(self) -> str:
        return self._session.get_bind().dialect.name

    def _insert_for(self, model: Any) -> Any:
        dialect = self._dialect_name()
        if dialect == "postgresql":
            return pg_insert(model)
        if dialect == "sqlite":
            return sqlite_insert(model)
        raise RuntimeError(f"Unsupported database dialect for upserts: {dialect}")

    def _insert_ignore(
        self,
        model: Any,
        values: dict[str, Any],
        *,
        index_elements: list[str],
    ) -> None:
        stmt = self._insert_for(model).values(**values).on_conflict_do_nothing(
            index_elements=index_elements,
        )
        self._session.execute(stmt)

    def _advance_id_sequence(self, table_name: str) -> None:
        # Explicit ids bypass the serial sequence; move it past the max id.
        if self._dialect_name() != "postgresql":
            return
        self._session.execute(
            text(
                "SELECT setval(pg_get_serial_sequence(:table_name, 'id'), "
                f"(SELECT COALESCE(MAX(id), 1) FROM {table_name}))"
            ),
            {"table_name": table_name},
        )

