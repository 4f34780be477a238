"""
app/services/store_rollup.py

Store-level aggregates derived from advisor-level services records.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from db.models.upload_session import UploadFileType
from db.repositories.performance_repository import PerformanceRecordRepository

logger = logging.getLogger(__name__)

_COUNT_FIELDS = (
    "allTires",
    "retailTires",
    "tireProtection",
    "acService",
    "wiperBlades",
    "brakeService",
    "brakeFlush",
    "alignments",
    "potentialAlignments",
    "potentialAlignmentsSold",
    "shocksStruts",
    "invoices",
)
_CURRENCY_FIELDS = ("sales", "gpSales")


def _as_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _ceil_percent(part: float, whole: float) -> int:
    return math.ceil(part / whole * 100) if whole > 0 else 0


def build_store_rollup(
    *,
    store_name: str,
    market_name: str,
    advisor_payloads: Iterable[Mapping[str, Any]],
) -> dict[str, Any]:
    payloads = list(advisor_payloads)
    counts = {name: int(sum(_as_float(p.get(name)) for p in payloads)) for name in _COUNT_FIELDS}
    currency = {name: sum(_as_float(p.get(name)) for p in payloads) for name in _CURRENCY_FIELDS}

    sales = currency["sales"]
    invoices = counts["invoices"]
    return {
        "dataLevel": "store",
        "storeName": store_name,
        "market": market_name,
        **counts,
        "tireProtectionPercent": _ceil_percent(counts["tireProtection"], counts["retailTires"]),
        "brakeFlushToServicePercent": _ceil_percent(counts["brakeFlush"], counts["brakeService"]),
        "potentialAlignmentsPercent": _ceil_percent(
            counts["potentialAlignmentsSold"],
            counts["potentialAlignments"],
        ),
        "sales": sales,
        "gpSales": currency["gpSales"],
        "gpPercent": round(currency["gpSales"] / sales * 100, 2) if sales > 0 else 0,
        "avgSpend": round(sales / invoices, 2) if invoices > 0 else 0,
        "advisorCount": len(payloads),
        "generated": True,
    }


def generate_store_rollups(
    db: Session,
    *,
    report_date: date,
    upload_session_id: uuid.UUID | None = None,
) -> int:
    """
    Insert one store-level record per store with advisor records on
    ``report_date`` unless that store already has one. Returns the number of
    records inserted.
    """

    repository = PerformanceRecordRepository(db)
    generated = 0
    for store, market in repository.stores_with_advisor_records(upload_date=report_date):
        if repository.has_store_level_record(upload_date=report_date, store_id=store.id):
            logger.debug("Store rollup exists store_id=%s date=%s", store.id, report_date)
            continue
        payloads = repository.advisor_payloads_for_store(upload_date=report_date, store_id=store.id)
        repository.add_record(
            upload_date=report_date,
            data_type=UploadFileType.SERVICES,
            market_id=market.id,
            store_id=store.id,
            upload_session_id=upload_session_id,
            data=build_store_rollup(
                store_name=store.name,
                market_name=market.name,
                advisor_payloads=payloads,
            ),
        )
        generated += 1
    return generated
