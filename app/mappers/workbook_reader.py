"""
app/mappers/workbook_reader.py

Excel workbook loading with pandas (openpyxl engine).

Only the requested sheets are read. Each sheet is returned raw: first row as
headers, remaining rows as cell lists with NaN/NaT normalized to ``None`` and
numpy scalars converted to plain Python values.
"""

from __future__ import annotations

import math
import zipfile
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any, BinaryIO

import pandas as pd

from app.mappers.sheet_extractor import SheetTable
from db.repositories.errors import UploadValidationError


def _normalize_cell(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return None
    if hasattr(value, "item") and not isinstance(value, (str, bytes, datetime)):
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat() if value.time() == datetime.min.time() else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        return value.strip()
    return value


def _normalize_header(value: Any) -> str | None:
    value = _normalize_cell(value)
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def frame_to_table(name: str, frame: pd.DataFrame) -> SheetTable:
    """
    Convert a header-less DataFrame into a ``SheetTable``.
    """

    if frame.shape[0] == 0:
        return SheetTable(name=name, headers=(), rows=())

    records = frame.astype(object).values.tolist()
    headers = tuple(_normalize_header(cell) for cell in records[0])
    rows = tuple(tuple(_normalize_cell(cell) for cell in record) for record in records[1:])
    return SheetTable(name=name, headers=headers, rows=rows)


def read_workbook(
    source: str | BinaryIO,
    sheet_names: Iterable[str],
) -> dict[str, SheetTable]:
    """
    Read ``sheet_names`` from an Excel workbook.

    Sheets missing from the workbook are returned as empty tables so callers
    can treat "absent" and "header only" the same way.
    """

    wanted = list(sheet_names)
    try:
        with pd.ExcelFile(source, engine="openpyxl") as workbook:
            available = {str(name) for name in workbook.sheet_names}
            tables: dict[str, SheetTable] = {}
            for name in wanted:
                if name not in available:
                    tables[name] = SheetTable(name=name, headers=(), rows=())
                    continue
                frame = workbook.parse(name, header=None, dtype=object)
                tables[name] = frame_to_table(name, frame)
    except (ValueError, KeyError, OSError, zipfile.BadZipFile) as exc:
        raise UploadValidationError(f"Unable to read Excel workbook: {exc}") from exc
    return tables
