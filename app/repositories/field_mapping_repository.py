"""
app/repositories/field_mapping_repository.py

Persistence helpers for spreadsheet field-mapping rules.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.mappers.field_schema import FieldMapping, FieldSchema, default_schema
from db.models.field_mapping_rule import FieldMappingRule


def _to_field_mapping(rule: FieldMappingRule) -> FieldMapping:
    return FieldMapping(
        spreadsheet_header=rule.spreadsheet_header,
        canonical_field=rule.canonical_field,
        value_type=rule.value_type,
        is_percentage=rule.is_percentage,
    )


class FieldMappingRepository:
    """
    Repository for global and market-scoped field-mapping rules.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_rules(self, *, file_kind: str, market_id: int | None) -> list[FieldMappingRule]:
        """
        Active rules for one scope; ``market_id=None`` selects the global defaults.
        """

        stmt = select(FieldMappingRule).where(
            FieldMappingRule.file_kind == file_kind,
            FieldMappingRule.is_active.is_(True),
        )
        if market_id is None:
            stmt = stmt.where(FieldMappingRule.market_id.is_(None))
        else:
            stmt = stmt.where(FieldMappingRule.market_id == market_id)
        stmt = stmt.order_by(FieldMappingRule.sort_order, FieldMappingRule.id)
        return list(self._session.scalars(stmt).all())

    def get_effective_schema(self, *, file_kind: str, market_id: int | None = None) -> FieldSchema:
        """
        Resolve the schema handed to the extractor: stored defaults (or the
        built-in schema when none are stored) with market overrides merged on
        top by canonical field.
        """

        builtin = default_schema(file_kind)
        defaults = self.list_rules(file_kind=file_kind, market_id=None)
        schema = builtin.merge_overrides(_to_field_mapping(rule) for rule in defaults) if defaults else builtin

        if market_id is not None:
            overrides = self.list_rules(file_kind=file_kind, market_id=market_id)
            if overrides:
                schema = schema.merge_overrides(_to_field_mapping(rule) for rule in overrides)
        return schema

    def save_market_overrides(
        self,
        *,
        file_kind: str,
        market_id: int,
        mappings: Sequence[FieldMapping],
    ) -> list[FieldMappingRule]:
        """
        Insert or update overrides keyed by (file_kind, market_id, canonical_field).
        """

        existing = {
            rule.canonical_field: rule
            for rule in self._session.scalars(
                select(FieldMappingRule).where(
                    FieldMappingRule.file_kind == file_kind,
                    FieldMappingRule.market_id == market_id,
                )
            ).all()
        }

        saved: list[FieldMappingRule] = []
        for position, mapping in enumerate(mappings):
            rule = existing.get(mapping.canonical_field)
            if rule is None:
                rule = FieldMappingRule(
                    file_kind=file_kind,
                    market_id=market_id,
                    canonical_field=mapping.canonical_field,
                )
                self._session.add(rule)
                existing[mapping.canonical_field] = rule
            rule.spreadsheet_header = mapping.spreadsheet_header
            rule.value_type = mapping.value_type
            rule.is_percentage = mapping.coerces_as_percentage
            rule.sort_order = position
            rule.is_active = True
            saved.append(rule)

        self._session.flush()
        return saved
