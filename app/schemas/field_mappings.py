"""
app/schemas/field_mappings.py

Schemas for reading and overriding spreadsheet field mappings.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from app.mappers.field_schema import FieldMapping, FieldSchema, ValueType


class FieldMappingItem(BaseModel):
    spreadsheet_header: str = Field(..., min_length=1, max_length=255)
    canonical_field: str = Field(..., min_length=1, max_length=100)
    value_type: str = ValueType.NUMBER
    is_percentage: bool = False

    @field_validator("value_type")
    @classmethod
    def _check_value_type(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ValueType.ALL:
            raise ValueError(f"value_type must be one of: {', '.join(ValueType.ALL)}")
        return normalized

    def to_field_mapping(self) -> FieldMapping:
        return FieldMapping(
            spreadsheet_header=self.spreadsheet_header.strip(),
            canonical_field=self.canonical_field.strip(),
            value_type=self.value_type,
            is_percentage=self.is_percentage,
        )


class FieldMappingOverrideRequest(BaseModel):
    mappings: list[FieldMappingItem] = Field(..., min_length=1)


class FieldSchemaResponse(BaseModel):
    file_kind: str
    market_id: int | None = None
    fields: list[FieldMappingItem] = Field(default_factory=list)

    @classmethod
    def from_schema(cls, schema: FieldSchema, market_id: int | None) -> FieldSchemaResponse:
        return cls(
            file_kind=schema.file_kind,
            market_id=market_id,
            fields=[FieldMappingItem(**item) for item in schema.to_payload()],
        )
