"""
app/schemas/uploads.py

Request/response schemas for upload discovery, review, and confirmation.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.domain.reconciliation import (
    AdvisorDecision,
    ConfirmationDecisions,
    ConfirmationResult,
    DiscoveryResult,
    MarketDecision,
    MatchAction,
    SessionSnapshot,
    StoreDecision,
    optional_int,
)

# Review UIs submit "create"/"map" for advisors too.
_ADVISOR_ACTION_ALIASES = {
    MatchAction.CREATE: MatchAction.CREATE_USER,
    MatchAction.MAP: MatchAction.MAP_USER,
}


def _split_store_key(key: str, entry: dict[str, Any]) -> tuple[str | None, str]:
    """
    Split a ``"market:store"`` key, preferring the entry's own ``market`` or
    ``name`` so names containing ":" survive. Without either, the first ":"
    separates market from store.
    """

    market = entry.get("market", entry.get("marketName"))
    if isinstance(market, str) and key.startswith(f"{market}:"):
        return market, key[len(market) + 1:]
    name = entry.get("name")
    if isinstance(name, str) and key.endswith(f":{name}"):
        return key[: -len(name) - 1], name
    if ":" in key:
        market, name = key.split(":", 1)
        return market, name
    return None, key


def _normalize_collection(value: Any, *, composite_key: bool = False) -> Any:
    """
    Accept a list of decisions or an object keyed by entity name.

    Keyed objects become a list in key order; the key fills in ``name`` (and,
    for ``"market:store"`` keys, ``market``) when the value omits it. Stores
    whose market and name both contain ":" need explicit ``market``/``name``
    fields, or the list form.
    """

    if value is None:
        return []
    if not isinstance(value, dict):
        return value

    items: list[Any] = []
    for key, item in value.items():
        if not isinstance(item, dict):
            items.append(item)
            continue
        entry = dict(item)
        name = str(key)
        if composite_key:
            market, name = _split_store_key(name, entry)
            if market is not None and "marketName" not in entry:
                entry.setdefault("market", market)
        entry.setdefault("name", name)
        items.append(entry)
    return items


# ---------------------------------------------------------------------------
# Confirmation request
# ---------------------------------------------------------------------------


class _DecisionIn(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(..., min_length=1)


class MarketDecisionIn(_DecisionIn):
    action: Literal["create", "map", "ignore"]
    existing_id: int | None = Field(default=None, validation_alias=AliasChoices("existing_id", "existingId"))
    proposed_id: int | None = Field(default=None, validation_alias=AliasChoices("proposed_id", "proposedId"))
    source: str | None = None

    @field_validator("proposed_id", mode="before")
    @classmethod
    def _numeric_proposed_id(cls, value: Any) -> int | None:
        # Placeholder keys such as "new_atlanta" fall back to an auto-assigned id.
        return optional_int(value)


class StoreDecisionIn(_DecisionIn):
    market: str | None = Field(default=None, validation_alias=AliasChoices("market", "marketName"))
    action: Literal["create", "map", "ignore"]
    existing_id: int | None = Field(default=None, validation_alias=AliasChoices("existing_id", "existingId"))


class AdvisorDecisionIn(_DecisionIn):
    action: Literal["create_user", "map_user", "ignore"]
    existing_user_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("existing_user_id", "existingUserId", "existing_id", "existingId"),
    )
    mapping_source: str | None = Field(
        default=None,
        validation_alias=AliasChoices("mapping_source", "mappingSource"),
    )
    proposed_user_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("proposed_user_id", "proposedUserId"),
    )
    proposed_first_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("proposed_first_name", "proposedFirstName"),
    )
    proposed_last_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("proposed_last_name", "proposedLastName"),
    )
    proposed_email: str | None = Field(
        default=None,
        validation_alias=AliasChoices("proposed_email", "proposedEmail"),
    )

    @field_validator("action", mode="before")
    @classmethod
    def _alias_action(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _ADVISOR_ACTION_ALIASES.get(value, value)
        return value


class ConfirmationRequest(BaseModel):
    """
    Reviewed decisions for one session. Each collection may be sent as a list
    or as an object keyed by entity name; both are normalized to a list here.
    """

    model_config = ConfigDict(extra="ignore")

    markets: list[MarketDecisionIn] = Field(default_factory=list)
    stores: list[StoreDecisionIn] = Field(default_factory=list)
    advisors: list[AdvisorDecisionIn] = Field(default_factory=list)

    @field_validator("markets", "advisors", mode="before")
    @classmethod
    def _normalize_named(cls, value: Any) -> Any:
        return _normalize_collection(value)

    @field_validator("stores", mode="before")
    @classmethod
    def _normalize_stores(cls, value: Any) -> Any:
        return _normalize_collection(value, composite_key=True)

    def to_decisions(self) -> ConfirmationDecisions:
        return ConfirmationDecisions(
            markets=tuple(
                MarketDecision(
                    name=item.name,
                    action=item.action,
                    existing_id=item.existing_id,
                    proposed_id=item.proposed_id,
                    source=item.source,
                )
                for item in self.markets
            ),
            stores=tuple(
                StoreDecision(
                    name=item.name,
                    market=item.market,
                    action=item.action,
                    existing_id=item.existing_id,
                )
                for item in self.stores
            ),
            advisors=tuple(
                AdvisorDecision(
                    name=item.name,
                    action=item.action,
                    existing_user_id=item.existing_user_id,
                    mapping_source=item.mapping_source,
                    proposed_user_id=item.proposed_user_id,
                    proposed_first_name=item.proposed_first_name,
                    proposed_last_name=item.proposed_last_name,
                    proposed_email=item.proposed_email,
                )
                for item in self.advisors
            ),
        )


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ConfirmationResponse(BaseModel):
    session_id: uuid.UUID
    status: str = "processed"
    processed_count: int = Field(..., ge=0)
    market_mappings: dict[str, int | None] = Field(default_factory=dict)
    store_mappings: dict[str, int | None] = Field(default_factory=dict)
    advisor_mappings: dict[str, int | None] = Field(default_factory=dict)
    rollup_count: int = Field(default=0, ge=0)

    @classmethod
    def from_result(cls, result: ConfirmationResult) -> ConfirmationResponse:
        return cls(
            session_id=result.session_id,
            processed_count=result.processed_count,
            market_mappings=result.market_mappings,
            store_mappings=result.store_mappings,
            advisor_mappings=result.advisor_mappings,
            rollup_count=result.rollup_count,
        )


class EntityCollections(BaseModel):
    markets: list[dict[str, Any]] = Field(default_factory=list)
    stores: list[dict[str, Any]] = Field(default_factory=list)
    advisors: list[dict[str, Any]] = Field(default_factory=list)


class DiscoveryResponse(BaseModel):
    """
    API response model for one discovered upload.
    """

    session_id: uuid.UUID
    file_type: str
    file_info: dict[str, Any]
    report_date: date
    discovered: EntityCollections
    existing: EntityCollections
    summary: dict[str, int]
    needs_review: dict[str, list[str]]
    requires_review: bool
    auto_confirmed: bool
    confirmation: ConfirmationResponse | None = None
    anomalies: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: DiscoveryResult) -> DiscoveryResponse:
        existing = result.existing
        return cls(
            session_id=result.session_id,
            file_type=result.file_type,
            file_info=result.file_info,
            report_date=result.report_date,
            discovered=EntityCollections(
                markets=[item.to_payload() for item in result.discovered.markets],
                stores=[item.to_payload() for item in result.discovered.stores],
                advisors=[item.to_payload() for item in result.discovered.advisors],
            ),
            existing=EntityCollections(
                markets=[item.to_dict() for item in existing.markets],
                stores=[item.to_dict() for item in existing.stores],
                advisors=[item.to_dict() for item in existing.advisors],
            ),
            summary=result.summary,
            needs_review=result.needs_review(),
            requires_review=result.requires_review,
            auto_confirmed=result.auto_confirmed,
            confirmation=(
                ConfirmationResponse.from_result(result.confirmation)
                if result.confirmation is not None
                else None
            ),
            anomalies=result.anomalies,
        )


class UploadSessionSummaryResponse(BaseModel):
    id: uuid.UUID
    filename: str
    file_type: str
    report_date: date
    status: str
    uploaded_by: int | None = None
    market_id: int | None = None
    created_at: datetime | None = None
    processed_at: datetime | None = None
    candidate_counts: dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> UploadSessionSummaryResponse:
        return cls(
            id=snapshot.id,
            filename=snapshot.filename,
            file_type=snapshot.file_type,
            report_date=snapshot.report_date,
            status=snapshot.status,
            uploaded_by=snapshot.uploaded_by,
            market_id=snapshot.market_id,
            created_at=snapshot.created_at,
            processed_at=snapshot.processed_at,
            candidate_counts=snapshot.candidate_counts(),
        )


class UploadSessionResponse(UploadSessionSummaryResponse):
    confirmed_at: datetime | None = None
    discovered: EntityCollections = Field(default_factory=EntityCollections)
    raw_data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: SessionSnapshot) -> UploadSessionResponse:
        summary = UploadSessionSummaryResponse.from_snapshot(snapshot)
        return cls(
            **summary.model_dump(),
            confirmed_at=snapshot.confirmed_at,
            discovered=EntityCollections(
                markets=snapshot.discovered_markets,
                stores=snapshot.discovered_stores,
                advisors=snapshot.discovered_advisors,
            ),
            raw_data=snapshot.raw_data,
        )


class UploadSessionListResponse(BaseModel):
    sessions: list[UploadSessionSummaryResponse] = Field(default_factory=list)


class CancelSessionResponse(BaseModel):
    session_id: uuid.UUID
    status: str = "cancelled"
