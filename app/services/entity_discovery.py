"""
app/services/entity_discovery.py

Collects the distinct markets, stores, and advisors named by parsed rows.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from app.domain.reconciliation import DiscoveredEntities, DiscoveredEntity, EntityKind, store_key


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def discover_entities(rows: Iterable[Mapping[str, Any]], source: str) -> DiscoveredEntities:
    """
    Deduplicate candidates by natural key.

    Markets and stores keep their first occurrence. Advisors keep the last
    market/store they were seen with. Rows without a market or store name
    simply do not contribute to that collection.
    """

    markets: dict[str, DiscoveredEntity] = {}
    stores: dict[tuple[str, str], DiscoveredEntity] = {}
    advisors: dict[str, DiscoveredEntity] = {}

    for row in rows:
        market = _text(row.get("market"))
        store_name = _text(row.get("storeName"))
        employee = _text(row.get("employeeName"))

        if market and market not in markets:
            markets[market] = DiscoveredEntity(
                kind=EntityKind.MARKET,
                name=market,
                natural_key=market,
                source=source,
            )

        if market and store_name and (market, store_name) not in stores:
            stores[(market, store_name)] = DiscoveredEntity(
                kind=EntityKind.STORE,
                name=store_name,
                natural_key=store_key(market, store_name),
                source=source,
                market=market,
            )

        if employee:
            previous = advisors.get(employee)
            advisors[employee] = DiscoveredEntity(
                kind=EntityKind.ADVISOR,
                name=employee,
                natural_key=employee,
                source=source,
                market=market or (previous.market if previous else None),
                store=store_name or (previous.store if previous else None),
            )

    return DiscoveredEntities(
        markets=list(markets.values()),
        stores=list(stores.values()),
        advisors=list(advisors.values()),
    )
