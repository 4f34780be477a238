"""
app/services/entity_matching_service.py

Annotates discovered entities with suggested actions against existing records.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.domain.reconciliation import (
    AnnotatedEntities,
    AnnotatedEntity,
    DiscoveredEntities,
    DiscoveredEntity,
    EntityKind,
    ExistingEntities,
    ExistingEntity,
    MappingSource,
    MatchAction,
    MatchAnnotation,
)
from app.services.fuzzy_matcher import EXACT_SCORE, FuzzyMatcher
from db.repositories.organization_repository import OrganizationRepository


def load_existing_entities(db: Session) -> ExistingEntities:
    """
    Snapshot the markets, stores, advisor users, and active advisor mappings
    that discovered entities are matched against.
    """

    repository = OrganizationRepository(db)
    advisor_mappings: dict[str, ExistingEntity] = {}
    for mapping, user in repository.list_active_advisor_mappings():
        advisor_mappings[mapping.spreadsheet_name] = ExistingEntity(
            id=mapping.user_id,
            name=user.full_name if user is not None else mapping.spreadsheet_name,
        )

    return ExistingEntities(
        markets=[ExistingEntity(id=m.id, name=m.name) for m in repository.list_markets()],
        stores=[
            ExistingEntity(id=s.id, name=s.name, market_id=s.market_id)
            for s in repository.list_stores()
        ],
        advisors=[ExistingEntity(id=u.id, name=u.full_name) for u in repository.list_advisors()],
        advisor_mappings=advisor_mappings,
    )


class EntityMatchingService:
    """
    Markets map on any match. Stores and advisors map only when the score is
    strictly above ``auto_map_threshold``.
    """

    def __init__(self, *, matcher: FuzzyMatcher, auto_map_threshold: float = 0.8) -> None:
        self._matcher = matcher
        self._auto_map_threshold = auto_map_threshold

    def annotate(
        self,
        discovered: DiscoveredEntities,
        existing: ExistingEntities,
        *,
        proposed_market_id: int | None = None,
    ) -> AnnotatedEntities:
        markets = [
            self._annotate_market(entity, existing, proposed_market_id)
            for entity in discovered.markets
        ]
        mapped_market_ids = {
            item.name: item.annotation.existing_id
            for item in markets
            if item.action == MatchAction.MAP
        }
        stores = [
            self._annotate_store(entity, existing, mapped_market_ids)
            for entity in discovered.stores
        ]
        advisors = [self._annotate_advisor(entity, existing) for entity in discovered.advisors]
        return AnnotatedEntities(markets=markets, stores=stores, advisors=advisors)

    def _annotate_market(
        self,
        entity: DiscoveredEntity,
        existing: ExistingEntities,
        proposed_market_id: int | None,
    ) -> AnnotatedEntity:
        match = self._matcher.match(entity.name, existing.markets, EntityKind.MARKET)
        if match is None:
            annotation = MatchAnnotation(action=MatchAction.CREATE, proposed_id=proposed_market_id)
        else:
            annotation = MatchAnnotation(
                action=MatchAction.MAP,
                existing_id=match.entity.id,
                proposed_id=proposed_market_id,
                score=match.score,
                suggested_name=match.entity.name,
            )
        return AnnotatedEntity(entity=entity, annotation=annotation)

    def _annotate_store(
        self,
        entity: DiscoveredEntity,
        existing: ExistingEntities,
        mapped_market_ids: dict[str, int | None],
    ) -> AnnotatedEntity:
        # Stores are only comparable within their own market; a market that is
        # about to be created has no stores yet.
        market_id = mapped_market_ids.get(entity.market or "")
        candidates = (
            [store for store in existing.stores if store.market_id == market_id]
            if market_id is not None
            else []
        )
        match = self._matcher.match(entity.name, candidates, EntityKind.STORE)
        if match is not None and match.score > self._auto_map_threshold:
            annotation = MatchAnnotation(
                action=MatchAction.MAP,
                existing_id=match.entity.id,
                score=match.score,
                suggested_name=match.entity.name,
            )
        else:
            annotation = MatchAnnotation(
                action=MatchAction.CREATE,
                score=match.score if match else None,
            )
        return AnnotatedEntity(entity=entity, annotation=annotation)

    def _annotate_advisor(self, entity: DiscoveredEntity, existing: ExistingEntities) -> AnnotatedEntity:
        remembered = existing.advisor_mappings.get(entity.name)
        if remembered is not None:
            return AnnotatedEntity(
                entity=entity,
                annotation=MatchAnnotation(
                    action=MatchAction.MAP_USER,
                    existing_id=remembered.id,
                    score=EXACT_SCORE,
                    mapping_source=MappingSource.ADVISOR_MAPPINGS_TABLE,
                    suggested_name=remembered.name,
                ),
            )

        match = self._matcher.match(entity.name, existing.advisors, EntityKind.ADVISOR)
        if match is not None and match.score > self._auto_map_threshold:
            annotation = MatchAnnotation(
                action=MatchAction.MAP_USER,
                existing_id=match.entity.id,
                score=match.score,
                mapping_source=MappingSource.FUZZY_MATCHING,
                suggested_name=match.entity.name,
            )
        else:
            annotation = MatchAnnotation(
                action=MatchAction.CREATE_USER,
                score=match.score if match else None,
                mapping_source=MappingSource.FUZZY_MATCHING,
            )
        return AnnotatedEntity(entity=entity, annotation=annotation)
