"""
Reconciliation domain objects: discovered entities, match annotations,
confirmation decisions, and the results handed back to callers.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any


class EntityKind:
    MARKET = "market"
    STORE = "store"
    ADVISOR = "advisor"


class MatchAction:
    CREATE = "create"
    MAP = "map"
    IGNORE = "ignore"
    CREATE_USER = "create_user"
    MAP_USER = "map_user"


class MappingSource:
    ADVISOR_MAPPINGS_TABLE = "advisor_mappings_table"
    FUZZY_MATCHING = "fuzzy_matching"


StoreRef = tuple[str | None, str | None]


def store_key(market: str | None, store_name: str | None) -> str:
    """
    Display key for a store: stores are unique per market.

    The joined form is ambiguous when either name contains ":"; lookups
    use the ``(market, store_name)`` pair from ``store_ref`` instead.
    """

    return f"{market}:{store_name}"


def store_ref(market: Any, store_name: Any) -> StoreRef:
    return (
        str(market).strip() if market is not None else None,
        str(store_name).strip() if store_name is not None else None,
    )


def optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = str(value).strip()
    return int(text) if text.lstrip("-").isdigit() else None


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DiscoveredEntity:
    kind: str
    name: str
    natural_key: str
    source: str
    market: str | None = None
    store: str | None = None


@dataclass(frozen=True)
class MatchAnnotation:
    action: str
    existing_id: int | None = None
    proposed_id: int | None = None
    score: float | None = None
    mapping_source: str | None = None
    suggested_name: str | None = None


@dataclass(frozen=True)
class AnnotatedEntity:
    entity: DiscoveredEntity
    annotation: MatchAnnotation

    @property
    def name(self) -> str:
        return self.entity.name

    @property
    def action(self) -> str:
        return self.annotation.action

    def to_payload(self) -> dict[str, Any]:
        """
        Wire/storage form kept in the session's discovered_* columns.
        """

        payload: dict[str, Any] = {
            "kind": self.entity.kind,
            "name": self.entity.name,
            "natural_key": self.entity.natural_key,
            "source": self.entity.source,
            "action": self.annotation.action,
            "existing_id": self.annotation.existing_id,
            "proposed_id": self.annotation.proposed_id,
            "score": self.annotation.score,
        }
        if self.entity.kind != EntityKind.MARKET:
            payload["market"] = self.entity.market
        if self.entity.kind == EntityKind.ADVISOR:
            payload["store"] = self.entity.store
            payload["mapping_source"] = self.annotation.mapping_source
        if self.annotation.existing_id is not None:
            payload["suggested_match"] = {
                "id": self.annotation.existing_id,
                "name": self.annotation.suggested_name,
            }
        else:
            payload["suggested_match"] = None
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> AnnotatedEntity:
        kind = str(payload.get("kind") or EntityKind.MARKET)
        name = str(payload.get("name") or "")
        suggested = payload.get("suggested_match") or {}
        return cls(
            entity=DiscoveredEntity(
                kind=kind,
                name=name,
                natural_key=str(payload.get("natural_key") or name),
                source=str(payload.get("source") or ""),
                market=payload.get("market"),
                store=payload.get("store"),
            ),
            annotation=MatchAnnotation(
                action=str(payload.get("action") or MatchAction.CREATE),
                existing_id=optional_int(payload.get("existing_id")),
                proposed_id=optional_int(payload.get("proposed_id")),
                score=payload.get("score"),
                mapping_source=payload.get("mapping_source"),
                suggested_name=suggested.get("name") if isinstance(suggested, Mapping) else None,
            ),
        )


@dataclass
class DiscoveredEntities:
    markets: list[DiscoveredEntity] = field(default_factory=list)
    stores: list[DiscoveredEntity] = field(default_factory=list)
    advisors: list[DiscoveredEntity] = field(default_factory=list)


@dataclass
class AnnotatedEntities:
    markets: list[AnnotatedEntity] = field(default_factory=list)
    stores: list[AnnotatedEntity] = field(default_factory=list)
    advisors: list[AnnotatedEntity] = field(default_factory=list)

    def all_mapped(self) -> bool:
        return (
            all(item.action == MatchAction.MAP for item in self.markets)
            and all(item.action == MatchAction.MAP for item in self.stores)
            and all(item.action == MatchAction.MAP_USER for item in self.advisors)
        )

    def needs_review(self) -> dict[str, list[str]]:
        return {
            "markets": [item.name for item in self.markets if item.action != MatchAction.MAP],
            "stores": [item.name for item in self.stores if item.action != MatchAction.MAP],
            "advisors": [item.name for item in self.advisors if item.action != MatchAction.MAP_USER],
        }


# ---------------------------------------------------------------------------
# Confirmation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarketDecision:
    name: str
    action: str
    existing_id: int | None = None
    proposed_id: int | None = None
    source: str | None = None


@dataclass(frozen=True)
class StoreDecision:
    name: str
    market: str | None
    action: str
    existing_id: int | None = None

    @property
    def key(self) -> str:
        return store_key(self.market, self.name)

    @property
    def ref(self) -> StoreRef:
        return store_ref(self.market, self.name)


@dataclass(frozen=True)
class AdvisorDecision:
    name: str
    action: str
    existing_user_id: int | None = None
    mapping_source: str | None = None
    proposed_user_id: str | None = None
    proposed_first_name: str | None = None
    proposed_last_name: str | None = None
    proposed_email: str | None = None


@dataclass(frozen=True)
class ConfirmationDecisions:
    markets: tuple[MarketDecision, ...] = ()
    stores: tuple[StoreDecision, ...] = ()
    advisors: tuple[AdvisorDecision, ...] = ()

    @classmethod
    def from_annotations(cls, annotated: AnnotatedEntities) -> ConfirmationDecisions:
        """
        Decisions that accept every suggestion as-is (used for auto-confirm).
        """

        return cls(
            markets=tuple(
                MarketDecision(
                    name=item.name,
                    action=item.action,
                    existing_id=item.annotation.existing_id,
                    proposed_id=item.annotation.proposed_id,
                    source=item.entity.source,
                )
                for item in annotated.markets
            ),
            stores=tuple(
                StoreDecision(
                    name=item.name,
                    market=item.entity.market,
                    action=item.action,
                    existing_id=item.annotation.existing_id,
                )
                for item in annotated.stores
            ),
            advisors=tuple(
                AdvisorDecision(
                    name=item.name,
                    action=item.action,
                    existing_user_id=item.annotation.existing_id,
                    mapping_source=item.annotation.mapping_source,
                )
                for item in annotated.advisors
            ),
        )


@dataclass
class ConfirmationResult:
    session_id: uuid.UUID
    processed_count: int
    market_mappings: dict[str, int | None] = field(default_factory=dict)
    store_mappings: dict[str, int | None] = field(default_factory=dict)
    advisor_mappings: dict[str, int | None] = field(default_factory=dict)
    rollup_count: int = 0


# ---------------------------------------------------------------------------
# Session + discovery results
# ---------------------------------------------------------------------------


@dataclass
class SessionSnapshot:
    """
    Detached view of an upload session with nested collections defaulted.
    """

    id: uuid.UUID
    filename: str
    file_type: str
    report_date: date
    status: str
    uploaded_by: int | None = None
    market_id: int | None = None
    discovered_markets: list[dict[str, Any]] = field(default_factory=list)
    discovered_stores: list[dict[str, Any]] = field(default_factory=list)
    discovered_advisors: list[dict[str, Any]] = field(default_factory=list)
    raw_data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    confirmed_at: datetime | None = None
    processed_at: datetime | None = None

    @classmethod
    def from_model(cls, model: Any) -> SessionSnapshot:
        return cls(
            id=model.id,
            filename=model.filename,
            file_type=model.file_type,
            report_date=model.report_date,
            status=model.status,
            uploaded_by=model.uploaded_by,
            market_id=model.market_id,
            discovered_markets=list(model.discovered_markets or []),
            discovered_stores=list(model.discovered_stores or []),
            discovered_advisors=list(model.discovered_advisors or []),
            raw_data=dict(model.raw_data or {}),
            created_at=model.created_at,
            confirmed_at=model.confirmed_at,
            processed_at=model.processed_at,
        )

    def candidate_counts(self) -> dict[str, int]:
        return {
            "markets": len(self.discovered_markets),
            "stores": len(self.discovered_stores),
            "advisors": len(self.discovered_advisors),
        }


@dataclass(frozen=True)
class ExistingEntity:
    id: int
    name: str
    market_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.market_id is not None:
            payload["market_id"] = self.market_id
        return payload


@dataclass
class ExistingEntities:
    markets: list[ExistingEntity] = field(default_factory=list)
    stores: list[ExistingEntity] = field(default_factory=list)
    advisors: list[ExistingEntity] = field(default_factory=list)
    # spreadsheet name -> remembered user
    advisor_mappings: dict[str, ExistingEntity] = field(default_factory=dict)


@dataclass
class DiscoveryResult:
    session_id: uuid.UUID
    file_type: str
    file_info: dict[str, Any]
    report_date: date
    discovered: AnnotatedEntities
    existing: ExistingEntities
    summary: dict[str, int]
    anomalies: list[dict[str, Any]] = field(default_factory=list)
    auto_confirmed: bool = False
    confirmation: ConfirmationResult | None = None

    @property
    def requires_review(self) -> bool:
        return not self.auto_confirmed

    def needs_review(self) -> dict[str, list[str]]:
        if self.auto_confirmed:
            return {"markets": [], "stores": [], "advisors": []}
        return self.discovered.needs_review()
