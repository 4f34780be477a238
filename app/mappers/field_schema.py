"""
app/mappers/field_schema.py

Field-mapping schemas for services and operations workbooks.

A schema is an ordered list of ``FieldMapping`` entries (spreadsheet header ->
canonical field + value semantics) plus the derived-count correction rules
that apply to its rows. Schemas are plain values: the extractor receives one
explicitly per call and never looks mappings up on its own.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from db.models.upload_session import UploadFileType


class ValueType:
    TEXT = "text"
    NUMBER = "number"
    INTEGER = "integer"
    PERCENTAGE = "percentage"

    ALL = (TEXT, NUMBER, INTEGER, PERCENTAGE)


@dataclass(frozen=True)
class FieldMapping:
    """
    One header -> canonical field rule.

    ``aliases`` are alternative headers tried (exactly) before the substring
    fallback, in order.
    """

    spreadsheet_header: str
    canonical_field: str
    value_type: str = ValueType.NUMBER
    is_percentage: bool = False
    aliases: tuple[str, ...] = ()

    @property
    def coerces_as_percentage(self) -> bool:
        return self.is_percentage or self.value_type == ValueType.PERCENTAGE

    def to_dict(self) -> dict[str, Any]:
        return {
            "spreadsheet_header": self.spreadsheet_header,
            "canonical_field": self.canonical_field,
            "value_type": self.value_type,
            "is_percentage": self.coerces_as_percentage,
        }


@dataclass(frozen=True)
class DerivedCountRule:
    """
    Correction for a count column that was filled with its own percentage.

    When ``count_field`` equals ``percent_field`` and ``base_field`` is positive,
    the count is recomputed as ``round(base * percent / 100)``.
    """

    count_field: str
    percent_field: str
    base_field: str


BRAKE_FLUSH_RULE = DerivedCountRule(
    count_field="brakeFlush",
    percent_field="brakeFlushToServicePercent",
    base_field="brakeService",
)


@dataclass(frozen=True)
class FieldSchema:
    file_kind: str
    fields: tuple[FieldMapping, ...]
    derived_rules: tuple[DerivedCountRule, ...] = field(default_factory=tuple)

    @property
    def canonical_fields(self) -> tuple[str, ...]:
        return tuple(mapping.canonical_field for mapping in self.fields)

    def get(self, canonical_field: str) -> FieldMapping | None:
        for mapping in self.fields:
            if mapping.canonical_field == canonical_field:
                return mapping
        return None

    def merge_overrides(self, overrides: Iterable[FieldMapping]) -> FieldSchema:
        """
        Return a new schema with ``overrides`` replacing entries that share a
        canonical field; unknown canonical fields are appended in order.
        """

        merged: dict[str, FieldMapping] = {mapping.canonical_field: mapping for mapping in self.fields}
        order = list(merged)
        for override in overrides:
            existing = merged.get(override.canonical_field)
            if existing is None:
                order.append(override.canonical_field)
                merged[override.canonical_field] = override
            else:
                # Keep alias fallbacks unless the override brings its own.
                merged[override.canonical_field] = replace(
                    override,
                    aliases=override.aliases or existing.aliases,
                )
        return replace(self, fields=tuple(merged[name] for name in order))

    def to_payload(self) -> list[dict[str, Any]]:
        return [mapping.to_dict() for mapping in self.fields]


def field_mapping_from_payload(payload: Mapping[str, Any]) -> FieldMapping:
    value_type = str(payload.get("value_type") or ValueType.NUMBER).strip().lower()
    if value_type not in ValueType.ALL:
        raise ValueError(f"Unsupported value_type '{value_type}'.")
    header = str(payload.get("spreadsheet_header") or "").strip()
    canonical = str(payload.get("canonical_field") or "").strip()
    if not header or not canonical:
        raise ValueError("spreadsheet_header and canonical_field are required.")
    return FieldMapping(
        spreadsheet_header=header,
        canonical_field=canonical,
        value_type=value_type,
        is_percentage=bool(payload.get("is_percentage", False)),
    )


# ---------------------------------------------------------------------------
# Built-in schemas
# ---------------------------------------------------------------------------

_T = ValueType.TEXT
_N = ValueType.NUMBER
_I = ValueType.INTEGER
_P = ValueType.PERCENTAGE

SERVICE_CATEGORY_FIELDS: tuple[tuple[str, str], ...] = (
    ("Alignments", "alignments"),
    ("Brake Service", "brakeService"),
    ("Brake Flush", "brakeFlush"),
    ("Oil Change", "oilChange"),
    ("Engine Air Filter", "engineAirFilter"),
    ("Cabin Air Filter", "cabinAirFilter"),
    ("Coolant Flush", "coolantFlush"),
    ("Differential Service", "differentialService"),
    ("Fuel System Service", "fuelSystemService"),
    ("Power Steering Flush", "powerSteeringFlush"),
    ("Transmission Fluid Service", "transmissionFluidService"),
    ("Shocks & Struts", "shocksStruts"),
    ("Wiper Blades", "wiperBlades"),
    ("AC Service", "acService"),
    ("Battery", "battery"),
    ("Premium Oil Change", "premiumOilChange"),
    ("Fuel Additive", "fuelAdditive"),
    ("Engine Flush", "engineFlush"),
    ("Filters", "filters"),
)

DEFAULT_SERVICES_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("ID", "storeId", _T),
    FieldMapping("Market", "market", _T),
    FieldMapping("Store", "storeName", _T),
    FieldMapping("Employee", "employeeName", _T),
    FieldMapping("Sales", "sales", _N),
    FieldMapping("GP Sales", "gpSales", _N),
    FieldMapping("GP Percent", "gpPercent", _P, True),
    FieldMapping("Avg. Spend", "avgSpend", _N),
    FieldMapping("Invoices", "invoices", _I),
    FieldMapping("All Tires", "allTires", _I),
    FieldMapping("Retail Tires", "retailTires", _I),
    FieldMapping("Tire Protection", "tireProtection", _N),
    FieldMapping("Tire Protection %", "tireProtectionPercent", _P, True),
    FieldMapping("Potential Alignments", "potentialAlignments", _I),
    FieldMapping("Potential Alignments Sold", "potentialAlignmentsSold", _I),
    FieldMapping("Potential Alignments %", "potentialAlignmentsPercent", _P, True),
    FieldMapping("Brake Flush to Service %", "brakeFlushToServicePercent", _P, True),
) + tuple(FieldMapping(header, canonical, _N) for header, canonical in SERVICE_CATEGORY_FIELDS)

DEFAULT_OPERATIONS_FIELDS: tuple[FieldMapping, ...] = (
    FieldMapping("ID", "storeId", _T, aliases=("Store ID", "StoreID", "Store_ID")),
    FieldMapping("Market", "market", _T),
    FieldMapping("Store", "storeName", _T),
    FieldMapping("Invoices", "invoices", _I),
    FieldMapping("Sales", "sales", _N),
    FieldMapping("GP $", "gpDollars", _N),
    FieldMapping("GP %", "gpPercent", _P, True),
    FieldMapping("Labor", "labor", _N),
    FieldMapping("Labor Hours", "laborHours", _N),
    FieldMapping("Labor Average", "laborAverage", _N),
    FieldMapping("Effective Labor Rate", "effectiveLaborRate", _N),
    FieldMapping("Tire Units", "tireUnits", _I),
    FieldMapping("Parts", "parts", _N),
    FieldMapping("Parts GP $", "partsGpDollars", _N),
    FieldMapping("Parts GP %", "partsGpPercent", _P, True),
    FieldMapping("Supplies", "supplies", _N),
    FieldMapping("Discounts", "discounts", _N),
    FieldMapping("Average RO", "averageRO", _N),
)


def default_schema(file_kind: str) -> FieldSchema:
    """
    Built-in schema used when no mapping rules are configured.
    """

    if file_kind == UploadFileType.SERVICES:
        return FieldSchema(
            file_kind=UploadFileType.SERVICES,
            fields=DEFAULT_SERVICES_FIELDS,
            derived_rules=(BRAKE_FLUSH_RULE,),
        )
    if file_kind == UploadFileType.OPERATIONS:
        return FieldSchema(file_kind=UploadFileType.OPERATIONS, fields=DEFAULT_OPERATIONS_FIELDS)
    raise ValueError(f"Unknown file kind '{file_kind}'.")
