"""
app/mappers/upload_parser.py

Assembles kind-specific uploads from extracted worksheets.

Services workbooks:   "Service Writers" (employee), "Stores", "Markets".
Operations workbooks: "Yesterday", "Year over Year".
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from app.domain.uploads import DataLevel, OperationsUpload, ReportType, Row, ServicesUpload
from app.mappers.field_schema import FieldSchema, ValueType
from app.mappers.sheet_extractor import (
    ExtractionAnomaly,
    ExtraCapture,
    SheetExtractor,
    SheetTable,
)

SERVICES_SHEETS: dict[str, str] = {
    "Service Writers": DataLevel.EMPLOYEE,
    "Stores": DataLevel.STORE,
    "Markets": DataLevel.MARKET,
}

OPERATIONS_SHEETS: dict[str, str] = {
    "Yesterday": ReportType.YESTERDAY,
    "Year over Year": ReportType.YEAR_OVER_YEAR,
}

_WHITESPACE = re.compile(r"\s+")


@dataclass
class ParsedUpload:
    upload: ServicesUpload | OperationsUpload
    anomalies: list[ExtractionAnomaly] = field(default_factory=list)


def _empty_table(name: str) -> SheetTable:
    return SheetTable(name=name, headers=(), rows=())


def _other_services_capture(schema: FieldSchema) -> ExtraCapture:
    known = {mapping.spreadsheet_header.strip().lower() for mapping in schema.fields}
    return ExtraCapture(
        key="otherServices",
        value_type=ValueType.NUMBER,
        header_predicate=lambda header: header.strip().lower() not in known,
    )


YOY_METRICS_CAPTURE = ExtraCapture(
    key="yoyMetrics",
    value_type=ValueType.PERCENTAGE,
    header_predicate=lambda header: "+/-" in header or "%" in header,
    include_mapped=True,
)


def parse_services_tables(
    tables: Mapping[str, SheetTable],
    schema: FieldSchema,
    extractor: SheetExtractor | None = None,
) -> ParsedUpload:
    extractor = extractor or SheetExtractor()
    capture = _other_services_capture(schema)
    levels: dict[str, list[Row]] = {}
    anomalies: list[ExtractionAnomaly] = []

    for sheet_name, level in SERVICES_SHEETS.items():
        table = tables.get(sheet_name) or _empty_table(sheet_name)
        result = extractor.extract(table, schema, extras=(capture,))
        anomalies.extend(result.anomalies)
        rows: list[Row] = []
        for row in result.rows:
            if level != DataLevel.EMPLOYEE:
                row["employeeName"] = None
            rows.append({"dataLevel": level, **row})
        levels[level] = rows

    upload = ServicesUpload(
        employees=levels[DataLevel.EMPLOYEE],
        stores=levels[DataLevel.STORE],
        markets=levels[DataLevel.MARKET],
    )
    return ParsedUpload(upload=upload, anomalies=anomalies)


def _store_code_fallback(row: Row) -> str | None:
    store_name = row.get("storeName")
    if not store_name:
        return None
    return _WHITESPACE.sub("_", str(store_name).lower())


def parse_operations_tables(
    tables: Mapping[str, SheetTable],
    schema: FieldSchema,
    extractor: SheetExtractor | None = None,
) -> ParsedUpload:
    extractor = extractor or SheetExtractor()
    by_report: dict[str, list[Row]] = {}
    anomalies: list[ExtractionAnomaly] = []

    for sheet_name, report_type in OPERATIONS_SHEETS.items():
        table = tables.get(sheet_name) or _empty_table(sheet_name)
        extras = (YOY_METRICS_CAPTURE,) if report_type == ReportType.YEAR_OVER_YEAR else ()
        result = extractor.extract(table, schema, extras=extras)
        anomalies.extend(result.anomalies)
        rows: list[Row] = []
        for row in result.rows:
            row["storeId"] = row.get("storeId") or _store_code_fallback(row)
            if not row["storeId"]:
                continue
            rows.append({"reportType": report_type, "dataLevel": DataLevel.STORE, **row})
        by_report[report_type] = rows

    upload = OperationsUpload(
        yesterday=by_report[ReportType.YESTERDAY],
        year_over_year=by_report[ReportType.YEAR_OVER_YEAR],
    )
    return ParsedUpload(upload=upload, anomalies=anomalies)
