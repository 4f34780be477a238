"""
app/mappers/sheet_extractor.py

Turns one worksheet (header row + data rows) into canonical row dictionaries
using an explicit ``FieldSchema``.

Extraction never raises on cell content: unparseable or empty cells become
``None`` and are reported as anomalies on the result.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from app.logging_utils import log_event
from app.mappers.field_schema import DerivedCountRule, FieldMapping, FieldSchema, ValueType

logger = logging.getLogger(__name__)

_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


class AnomalyKind:
    CELL_UNPARSEABLE = "cell_unparseable"
    HEADER_UNRESOLVED = "header_unresolved"
    DERIVED_COUNT_CORRECTED = "derived_count_corrected"


@dataclass(frozen=True)
class SheetTable:
    """
    Raw worksheet content: the first row as headers, the rest as data rows.
    """

    name: str
    headers: tuple[str | None, ...]
    rows: tuple[tuple[Any, ...], ...]


@dataclass(frozen=True)
class ExtraCapture:
    """
    Collects matching, non-schema columns into one open-ended mapping stored
    under ``key`` on each row (``None`` when nothing was captured).
    """

    key: str
    value_type: str
    header_predicate: Callable[[str], bool]
    include_mapped: bool = False


@dataclass(frozen=True)
class ExtractionAnomaly:
    kind: str
    sheet: str
    row_number: int | None = None
    canonical_field: str | None = None
    raw_value: Any = None
    corrected_value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "sheet": self.sheet,
            "row_number": self.row_number,
            "canonical_field": self.canonical_field,
            "raw_value": self.raw_value,
            "corrected_value": self.corrected_value,
        }


@dataclass
class ExtractionResult:
    rows: list[dict[str, Any]] = field(default_factory=list)
    anomalies: list[ExtractionAnomaly] = field(default_factory=list)

    @property
    def corrections(self) -> list[ExtractionAnomaly]:
        return [a for a in self.anomalies if a.kind == AnomalyKind.DERIVED_COUNT_CORRECTED]

    def extend(self, other: ExtractionResult) -> None:
        self.rows.extend(other.rows)
        self.anomalies.extend(other.anomalies)


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def _is_plain_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_number(value: Any) -> float | None:
    """Currency-tolerant float: ``$`` and ``,`` are stripped, trailing text ignored."""

    if is_blank(value):
        return None
    if _is_plain_number(value):
        return float(value) if math.isfinite(value) else None
    match = _FLOAT_PREFIX.match(str(value).replace("$", "").replace(",", ""))
    return float(match.group(1)) if match else None


def parse_integer(value: Any) -> int | None:
    if is_blank(value):
        return None
    if _is_plain_number(value):
        return int(value) if math.isfinite(value) else None
    match = _INT_PREFIX.match(str(value).replace(",", ""))
    return int(match.group(1)) if match else None


def parse_percentage(value: Any) -> float | None:
    if is_blank(value):
        return None
    if _is_plain_number(value):
        return float(value) if math.isfinite(value) else None
    match = _FLOAT_PREFIX.match(str(value).replace("%", "", 1))
    return float(match.group(1)) if match else None


def parse_text(value: Any) -> str | None:
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def coerce_cell(value: Any, value_type: str, *, is_percentage: bool = False) -> Any:
    if is_percentage or value_type == ValueType.PERCENTAGE:
        return parse_percentage(value)
    if value_type == ValueType.INTEGER:
        return parse_integer(value)
    if value_type == ValueType.TEXT:
        return parse_text(value)
    return parse_number(value)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


# ---------------------------------------------------------------------------
# Header resolution
# ---------------------------------------------------------------------------


def _normalize_header(header: str | None) -> str:
    return header.strip().lower() if header else ""


def resolve_headers(headers: Sequence[str | None], schema: FieldSchema) -> dict[str, int]:
    """
    Map canonical field -> column index.

    Exact (case-insensitive, trimmed) header or alias matches win. Fields left
    over fall back to the first column whose header contains the expected
    text and that no other field has claimed.
    """

    normalized = [_normalize_header(header) for header in headers]
    resolved: dict[str, int] = {}
    claimed: set[int] = set()

    for mapping in schema.fields:
        for candidate in (mapping.spreadsheet_header, *mapping.aliases):
            wanted = _normalize_header(candidate)
            if not wanted:
                continue
            for index, header in enumerate(normalized):
                if header == wanted and index not in claimed:
                    resolved[mapping.canonical_field] = index
                    claimed.add(index)
                    break
            if mapping.canonical_field in resolved:
                break

    for mapping in schema.fields:
        if mapping.canonical_field in resolved:
            continue
        wanted = _normalize_header(mapping.spreadsheet_header)
        if not wanted:
            continue
        for index, header in enumerate(normalized):
            if index not in claimed and header and wanted in header:
                resolved[mapping.canonical_field] = index
                claimed.add(index)
                break

    return resolved


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class SheetExtractor:
    """
    Stateless extractor; one ``extract`` call per worksheet.
    """

    def extract(
        self,
        table: SheetTable,
        schema: FieldSchema,
        *,
        extras: Sequence[ExtraCapture] = (),
    ) -> ExtractionResult:
        result = ExtractionResult()
        resolved = resolve_headers(table.headers, schema)

        unresolved = [name for name in schema.canonical_fields if name not in resolved]
        if unresolved and table.rows:
            for canonical_field in unresolved:
                result.anomalies.append(
                    ExtractionAnomaly(
                        kind=AnomalyKind.HEADER_UNRESOLVED,
                        sheet=table.name,
                        canonical_field=canonical_field,
                    )
                )
            log_event(
                logger,
                logging.INFO,
                AnomalyKind.HEADER_UNRESOLVED,
                sheet=table.name,
                fields=unresolved,
            )

        mapped_indexes = set(resolved.values())
        for row_number, cells in enumerate(table.rows, start=2):
            if all(is_blank(cell) for cell in cells):
                continue
            row = self._map_row(
                table=table,
                cells=cells,
                row_number=row_number,
                schema=schema,
                resolved=resolved,
                anomalies=result.anomalies,
            )
            for capture in extras:
                row[capture.key] = self._capture_extras(
                    headers=table.headers,
                    cells=cells,
                    capture=capture,
                    mapped_indexes=mapped_indexes,
                )
            for rule in schema.derived_rules:
                self._apply_derived_rule(
                    row,
                    rule,
                    sheet=table.name,
                    row_number=row_number,
                    anomalies=result.anomalies,
                )
            result.rows.append(row)

        return result

    def _map_row(
        self,
        *,
        table: SheetTable,
        cells: Sequence[Any],
        row_number: int,
        schema: FieldSchema,
        resolved: dict[str, int],
        anomalies: list[ExtractionAnomaly],
    ) -> dict[str, Any]:
        row: dict[str, Any] = {}
        for mapping in schema.fields:
            index = resolved.get(mapping.canonical_field)
            raw = cells[index] if index is not None and index < len(cells) else None
            value = self._coerce(mapping, raw)
            if value is None and not is_blank(raw):
                anomalies.append(
                    ExtractionAnomaly(
                        kind=AnomalyKind.CELL_UNPARSEABLE,
                        sheet=table.name,
                        row_number=row_number,
                        canonical_field=mapping.canonical_field,
                        raw_value=raw,
                    )
                )
                log_event(
                    logger,
                    logging.DEBUG,
                    AnomalyKind.CELL_UNPARSEABLE,
                    sheet=table.name,
                    row_number=row_number,
                    canonical_field=mapping.canonical_field,
                    raw_value=raw,
                )
            row[mapping.canonical_field] = value
        return row

    @staticmethod
    def _coerce(mapping: FieldMapping, raw: Any) -> Any:
        return coerce_cell(raw, mapping.value_type, is_percentage=mapping.is_percentage)

    @staticmethod
    def _capture_extras(
        *,
        headers: Sequence[str | None],
        cells: Sequence[Any],
        capture: ExtraCapture,
        mapped_indexes: set[int],
    ) -> dict[str, Any] | None:
        captured: dict[str, Any] = {}
        for index, header in enumerate(headers):
            if not header or index >= len(cells):
                continue
            if index in mapped_indexes and not capture.include_mapped:
                continue
            if not capture.header_predicate(header):
                continue
            value = coerce_cell(cells[index], capture.value_type)
            if value is not None:
                captured[header] = value
        return captured or None

    @staticmethod
    def _apply_derived_rule(
        row: dict[str, Any],
        rule: DerivedCountRule,
        *,
        sheet: str,
        row_number: int,
        anomalies: list[ExtractionAnomaly],
    ) -> None:
        count = row.get(rule.count_field)
        percent = row.get(rule.percent_field)
        base = row.get(rule.base_field)
        if count is None or percent is None or count != percent:
            return
        if base is None or base <= 0:
            return

        corrected = round_half_up(base * percent / 100)
        row[rule.count_field] = corrected
        anomalies.append(
            ExtractionAnomaly(
                kind=AnomalyKind.DERIVED_COUNT_CORRECTED,
                sheet=sheet,
                row_number=row_number,
                canonical_field=rule.count_field,
                raw_value=count,
                corrected_value=corrected,
            )
        )
        log_event(
            logger,
            logging.WARNING,
            AnomalyKind.DERIVED_COUNT_CORRECTED,
            sheet=sheet,
            row_number=row_number,
            count_field=rule.count_field,
            raw_value=count,
            corrected_value=corrected,
            base_field=rule.base_field,
            base_value=base,
        )
