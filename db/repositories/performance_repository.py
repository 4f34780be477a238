"""
Repository for performance record writes and the lookups used by store rollups.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.market import Market
from db.models.performance_record import PerformanceRecord
from db.models.store import Store


class PerformanceRecordRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def add_record(
        self,
        *,
        upload_date: date,
        data_type: str,
        data: dict[str, Any],
        market_id: int | None = None,
        store_id: int | None = None,
        advisor_user_id: int | None = None,
        upload_session_id: uuid.UUID | None = None,
    ) -> PerformanceRecord:
        record = PerformanceRecord(
            upload_date=upload_date,
            data_type=data_type,
            market_id=market_id,
            store_id=store_id,
            advisor_user_id=advisor_user_id,
            upload_session_id=upload_session_id,
            data=data,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def stores_with_advisor_records(self, *, upload_date: date) -> list[tuple[Store, Market]]:
        """
        Stores (with their market) that have at least one advisor-level record
        on ``upload_date``, ordered by store name.
        """

        stmt = (
            select(Store, Market)
            .join(PerformanceRecord, PerformanceRecord.store_id == Store.id)
            .join(Market, PerformanceRecord.market_id == Market.id)
            .where(
                PerformanceRecord.upload_date == upload_date,
                PerformanceRecord.advisor_user_id.is_not(None),
            )
            .distinct()
            .order_by(Store.name, Store.id)
        )
        return [(store, market) for store, market in self._session.execute(stmt).all()]

    def advisor_payloads_for_store(self, *, upload_date: date, store_id: int) -> list[dict[str, Any]]:
        stmt = select(PerformanceRecord.data).where(
            PerformanceRecord.upload_date == upload_date,
            PerformanceRecord.store_id == store_id,
            PerformanceRecord.advisor_user_id.is_not(None),
        )
        return [dict(payload or {}) for payload in self._session.scalars(stmt).all()]

    def has_store_level_record(self, *, upload_date: date, store_id: int) -> bool:
        stmt = (
            select(PerformanceRecord.id)
            .where(
                PerformanceRecord.upload_date == upload_date,
                PerformanceRecord.store_id == store_id,
                PerformanceRecord.advisor_user_id.is_(None),
            )
            .limit(1)
        )
        return self._session.scalars(stmt).first() is not None

    def list_for_session(self, upload_session_id: uuid.UUID) -> list[PerformanceRecord]:
        stmt = (
            select(PerformanceRecord)
            .where(PerformanceRecord.upload_session_id == upload_session_id)
            .order_by(PerformanceRecord.id)
        )
        return list(self._session.scalars(stmt).all())
