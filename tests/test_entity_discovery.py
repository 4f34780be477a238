"""
tests/test_entity_discovery.py

Candidate discovery and match annotation, without a database.
"""

from __future__ import annotations

import pytest

from app.domain.reconciliation import (
    AnnotatedEntity,
    EntityKind,
    ExistingEntities,
    ExistingEntity,
    MappingSource,
    MatchAction,
)
from app.domain.uploads import EntitySource
from app.services.entity_discovery import discover_entities
from app.services.entity_matching_service import EntityMatchingService
from app.services.fuzzy_matcher import FuzzyMatcher


@pytest.fixture()
def matching() -> EntityMatchingService:
    return EntityMatchingService(matcher=FuzzyMatcher(threshold=0.7), auto_map_threshold=0.8)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def test_candidates_are_deduplicated_in_first_seen_order() -> None:
    rows = [
        {"market": "Atlanta", "storeName": "Main St", "employeeName": "Jane Doe"},
        {"market": "Atlanta", "storeName": "Peachtree", "employeeName": "John Roe"},
        {"market": "Atlanta", "storeName": "Main St", "employeeName": "Jane Doe"},
        {"market": "Macon", "storeName": "Main St", "employeeName": None},
    ]

    discovered = discover_entities(rows, EntitySource.SERVICES_DATA)

    assert [m.name for m in discovered.markets] == ["Atlanta", "Macon"]
    assert [s.natural_key for s in discovered.stores] == [
        "Atlanta:Main St",
        "Atlanta:Peachtree",
        "Macon:Main St",
    ]
    assert [a.name for a in discovered.advisors] == ["Jane Doe", "John Roe"]
    assert all(m.source == EntitySource.SERVICES_DATA for m in discovered.markets)


def test_advisor_keeps_last_seen_market_and_store() -> None:
    rows = [
        {"market": "Atlanta", "storeName": "Main St", "employeeName": "Jane Doe"},
        {"market": "Macon", "storeName": "Riverside", "employeeName": "Jane Doe"},
    ]

    advisor = discover_entities(rows, EntitySource.SERVICES_DATA).advisors[0]

    assert advisor.market == "Macon"
    assert advisor.store == "Riverside"


def test_rows_without_names_contribute_nothing() -> None:
    rows = [
        {"market": None, "storeName": "Orphan", "employeeName": None},
        {"market": "  ", "storeName": None},
        {},
    ]

    discovered = discover_entities(rows, EntitySource.OPERATIONS_DATA)

    assert discovered.markets == []
    assert discovered.stores == []
    assert discovered.advisors == []


# ---------------------------------------------------------------------------
# Annotation
# ---------------------------------------------------------------------------


def test_existing_market_and_store_are_mapped(matching: EntityMatchingService) -> None:
    discovered = discover_entities(
        [{"market": "atlanta", "storeName": "Main Street"}],
        EntitySource.SERVICES_DATA,
    )
    existing = ExistingEntities(
        markets=[ExistingEntity(id=7, name="Atlanta")],
        stores=[
            ExistingEntity(id=30, name="Main Street", market_id=8),
            ExistingEntity(id=31, name="Main Street", market_id=7),
        ],
    )

    annotated = matching.annotate(discovered, existing, proposed_market_id=694)

    market = annotated.markets[0]
    assert market.action == MatchAction.MAP
    assert market.annotation.existing_id == 7
    assert market.annotation.proposed_id == 694
    store = annotated.stores[0]
    assert store.action == MatchAction.MAP
    assert store.annotation.existing_id == 31
    assert annotated.all_mapped()


def test_stores_of_a_new_market_are_created(matching: EntityMatchingService) -> None:
    discovered = discover_entities(
        [{"market": "Savannah", "storeName": "Main Street"}],
        EntitySource.SERVICES_DATA,
    )
    existing = ExistingEntities(stores=[ExistingEntity(id=31, name="Main Street", market_id=7)])

    annotated = matching.annotate(discovered, existing)

    assert annotated.markets[0].action == MatchAction.CREATE
    assert annotated.stores[0].action == MatchAction.CREATE
    assert annotated.needs_review() == {"markets": ["Savannah"], "stores": ["Main Street"], "advisors": []}


def test_weak_store_match_is_suggested_for_creation(matching: EntityMatchingService) -> None:
    discovered = discover_entities(
        [{"market": "Atlanta", "storeName": "Mainn"}],
        EntitySource.SERVICES_DATA,
    )
    existing = ExistingEntities(
        markets=[ExistingEntity(id=7, name="Atlanta")],
        stores=[ExistingEntity(id=31, name="Maine", market_id=7)],
    )

    store = matching.annotate(discovered, existing).stores[0]

    # 0.8 similarity is accepted by the matcher but not above the auto-map threshold
    assert store.action == MatchAction.CREATE
    assert store.annotation.score == pytest.approx(0.8)
    assert store.annotation.existing_id is None


def test_remembered_advisor_mapping_wins(matching: EntityMatchingService) -> None:
    discovered = discover_entities(
        [{"market": "Atlanta", "storeName": "Main St", "employeeName": "J. Doe"}],
        EntitySource.SERVICES_DATA,
    )
    existing = ExistingEntities(
        advisors=[ExistingEntity(id=5, name="J. Doe")],
        advisor_mappings={"J. Doe": ExistingEntity(id=9, name="Jane Doe")},
    )

    advisor = matching.annotate(discovered, existing).advisors[0]

    assert advisor.action == MatchAction.MAP_USER
    assert advisor.annotation.existing_id == 9
    assert advisor.annotation.score == 1.0
    assert advisor.annotation.mapping_source == MappingSource.ADVISOR_MAPPINGS_TABLE


def test_unknown_advisor_is_created_with_fuzzy_source(matching: EntityMatchingService) -> None:
    discovered = discover_entities([{"employeeName": "Zed Quinn"}], EntitySource.SERVICES_DATA)
    existing = ExistingEntities(advisors=[ExistingEntity(id=5, name="Jane Doe")])

    advisor = matching.annotate(discovered, existing).advisors[0]

    assert advisor.action == MatchAction.CREATE_USER
    assert advisor.annotation.mapping_source == MappingSource.FUZZY_MATCHING
    assert advisor.annotation.score is None


def test_annotation_payload_round_trips() -> None:
    discovered = discover_entities(
        [{"market": "Atlanta", "storeName": "Main St", "employeeName": "Jane Doe"}],
        EntitySource.SERVICES_DATA,
    )
    annotated = EntityMatchingService(matcher=FuzzyMatcher()).annotate(
        discovered,
        ExistingEntities(advisors=[ExistingEntity(id=5, name="Jane Doe")]),
    )
    advisor = annotated.advisors[0]

    payload = advisor.to_payload()
    restored = AnnotatedEntity.from_payload(payload)

    assert payload["kind"] == EntityKind.ADVISOR
    assert payload["suggested_match"] == {"id": 5, "name": "Jane Doe"}
    assert restored == advisor
