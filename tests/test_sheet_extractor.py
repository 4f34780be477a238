"""
tests/test_sheet_extractor.py

Unit tests for header resolution, cell coercion and row extraction.

Pure Python: tables are built in memory, no workbook or database involved.
"""

from __future__ import annotations

import json

import pytest

from app.mappers.field_schema import FieldMapping, FieldSchema, ValueType, default_schema
from app.mappers.sheet_extractor import (
    AnomalyKind,
    ExtraCapture,
    SheetExtractor,
    SheetTable,
    parse_integer,
    parse_number,
    parse_percentage,
    resolve_headers,
    round_half_up,
)
from db.models.upload_session import UploadFileType


@pytest.fixture()
def extractor() -> SheetExtractor:
    return SheetExtractor()


@pytest.fixture()
def small_schema() -> FieldSchema:
    return FieldSchema(
        file_kind=UploadFileType.SERVICES,
        fields=(
            FieldMapping("Market", "market", ValueType.TEXT),
            FieldMapping("Store", "storeName", ValueType.TEXT),
            FieldMapping("Sales", "sales", ValueType.NUMBER),
            FieldMapping("Invoices", "invoices", ValueType.INTEGER),
            FieldMapping("GP %", "gpPercent", ValueType.PERCENTAGE, True),
        ),
    )


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("$1,234.50", 1234.5),
        ("12abc", 12.0),
        (7, 7.0),
        ("", None),
        ("n/a", None),
        (None, None),
    ],
)
def test_parse_number(raw, expected) -> None:
    assert parse_number(raw) == expected


def test_parse_integer_strips_thousands_separator() -> None:
    assert parse_integer("1,204") == 1204
    assert parse_integer(12.9) == 12
    assert parse_integer("abc") is None


def test_parse_percentage_strips_percent_sign() -> None:
    assert parse_percentage("45%") == 45.0
    assert parse_percentage("12.5 %") == 12.5
    assert parse_percentage("%") is None


def test_round_half_up_rounds_halves_away_from_zero_for_positive_values() -> None:
    assert round_half_up(54.5) == 55
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4) == 2


# ---------------------------------------------------------------------------
# Header resolution
# ---------------------------------------------------------------------------


def test_exact_headers_are_case_insensitive_and_trimmed(small_schema: FieldSchema) -> None:
    resolved = resolve_headers(["  MARKET", "store ", "Sales", "Invoices", "gp %"], small_schema)

    assert resolved == {"market": 0, "storeName": 1, "sales": 2, "invoices": 3, "gpPercent": 4}


def test_substring_fallback_uses_unclaimed_columns(small_schema: FieldSchema) -> None:
    resolved = resolve_headers(["Market", "Store Name", "Net Sales", "Invoices"], small_schema)

    assert resolved["storeName"] == 1
    assert resolved["sales"] == 2
    assert "gpPercent" not in resolved


def test_aliases_match_before_substring_fallback() -> None:
    schema = default_schema(UploadFileType.OPERATIONS)

    resolved = resolve_headers(["Store ID", "Market", "Store"], schema)

    assert resolved["storeId"] == 0
    assert resolved["storeName"] == 2


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def test_extract_coerces_values_and_skips_blank_rows(
    extractor: SheetExtractor,
    small_schema: FieldSchema,
) -> None:
    table = SheetTable(
        name="Stores",
        headers=("Market", "Store", "Sales", "Invoices", "GP %"),
        rows=(
            ("Atlanta", "Main St", "$1,000", "12", "40%"),
            (None, "", None, "  ", None),
            ("Atlanta", "Peachtree", "oops", 3, 38.5),
        ),
    )

    result = extractor.extract(table, small_schema)

    assert len(result.rows) == 2
    assert result.rows[0] == {
        "market": "Atlanta",
        "storeName": "Main St",
        "sales": 1000.0,
        "invoices": 12,
        "gpPercent": 40.0,
    }
    assert result.rows[1]["sales"] is None
    unparseable = [a for a in result.anomalies if a.kind == AnomalyKind.CELL_UNPARSEABLE]
    assert len(unparseable) == 1
    assert unparseable[0].row_number == 4
    assert unparseable[0].canonical_field == "sales"


def test_unresolved_headers_yield_null_fields(extractor: SheetExtractor, small_schema: FieldSchema) -> None:
    table = SheetTable(name="Stores", headers=("Market", "Store"), rows=(("Atlanta", "Main St"),))

    result = extractor.extract(table, small_schema)

    assert result.rows[0]["sales"] is None
    unresolved = {a.canonical_field for a in result.anomalies if a.kind == AnomalyKind.HEADER_UNRESOLVED}
    assert unresolved == {"sales", "invoices", "gpPercent"}


def test_brake_flush_equal_to_percent_is_recomputed(extractor: SheetExtractor) -> None:
    schema = default_schema(UploadFileType.SERVICES)
    table = SheetTable(
        name="Service Writers",
        headers=("Market", "Store", "Employee", "Brake Service", "Brake Flush", "Brake Flush to Service %"),
        rows=(
            ("Atlanta", "Main St", "Jane Doe", 120, 45, 45),
            ("Atlanta", "Main St", "John Roe", 0, 10, 10),
            ("Atlanta", "Main St", "Ann Poe", 80, 12, 15),
        ),
    )

    result = extractor.extract(table, schema)

    assert result.rows[0]["brakeFlush"] == 54
    assert result.rows[1]["brakeFlush"] == 10.0
    assert result.rows[2]["brakeFlush"] == 12.0
    assert len(result.corrections) == 1
    correction = result.corrections[0]
    assert correction.raw_value == 45.0
    assert correction.corrected_value == 54


def test_extra_capture_collects_unmapped_numeric_columns(
    extractor: SheetExtractor,
    small_schema: FieldSchema,
) -> None:
    capture = ExtraCapture(
        key="otherServices",
        value_type=ValueType.NUMBER,
        header_predicate=lambda header: True,
    )
    table = SheetTable(
        name="Service Writers",
        headers=("Market", "Store", "Nitrogen Fill", "Notes"),
        rows=(
            ("Atlanta", "Main St", "4", "call back"),
            ("Atlanta", "Peachtree", None, None),
        ),
    )

    result = extractor.extract(table, small_schema, extras=(capture,))

    assert result.rows[0]["otherServices"] == {"Nitrogen Fill": 4.0}
    assert result.rows[1]["otherServices"] is None


def test_extracting_the_same_table_twice_is_identical(extractor: SheetExtractor) -> None:
    schema = default_schema(UploadFileType.SERVICES)
    table = SheetTable(
        name="Service Writers",
        headers=("Market", "Store", "Employee", "Sales", "Brake Service", "Brake Flush", "Brake Flush to Service %"),
        rows=(
            ("Atlanta", "Main St", "Jane Doe", "$1,000", 120, 45, 45),
            ("Atlanta", "Main St", "John Roe", "n/a", 80, 12, 15),
            (None, None, None, None, None, None, None),
        ),
    )

    first = extractor.extract(table, schema)
    second = extractor.extract(table, schema)

    assert json.dumps(first.rows, sort_keys=True) == json.dumps(second.rows, sort_keys=True)
    assert first.anomalies == second.anomalies
    assert len(first.rows) == 2
