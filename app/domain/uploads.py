"""
Parsed upload content, one variant per file kind.

Rows are plain dictionaries keyed by canonical field name so that they
round-trip unchanged through the session's ``raw_data`` JSON column.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar

from db.models.upload_session import UploadFileType
from db.repositories.errors import UploadValidationError

Row = dict[str, Any]


class EntitySource:
    SERVICES_DATA = "services_data"
    OPERATIONS_DATA = "operations_data"


class DataLevel:
    EMPLOYEE = "employee"
    STORE = "store"
    MARKET = "market"


class ReportType:
    YESTERDAY = "yesterday"
    YEAR_OVER_YEAR = "yoy"


def _rows(raw: Mapping[str, Any], key: str) -> list[Row]:
    return [dict(row) for row in (raw.get(key) or [])]


@dataclass
class ServicesUpload:
    """
    Advisor-level services workbook: employee rows drive discovery, store and
    market sheet rows are committed alongside them.
    """

    employees: list[Row] = field(default_factory=list)
    stores: list[Row] = field(default_factory=list)
    markets: list[Row] = field(default_factory=list)

    file_kind: ClassVar[str] = UploadFileType.SERVICES
    source: ClassVar[str] = EntitySource.SERVICES_DATA

    def discovery_rows(self) -> list[Row]:
        return self.employees

    def validate(self) -> None:
        if not self.employees:
            raise UploadValidationError("No employee data found in services file.")

    def summary(self) -> dict[str, int]:
        return {
            "employees": len(self.employees),
            "stores": len(self.stores),
            "markets": len(self.markets),
        }

    def to_raw_data(self) -> dict[str, Any]:
        return {
            "employees": self.employees,
            "stores": self.stores,
            "markets": self.markets,
        }

    @classmethod
    def from_raw_data(cls, raw: Mapping[str, Any]) -> ServicesUpload:
        return cls(
            employees=_rows(raw, "employees"),
            stores=_rows(raw, "stores"),
            markets=_rows(raw, "markets"),
        )


@dataclass
class OperationsUpload:
    """
    Store-level operations workbook ("Yesterday" and "Year over Year" sheets).
    """

    yesterday: list[Row] = field(default_factory=list)
    year_over_year: list[Row] = field(default_factory=list)

    file_kind: ClassVar[str] = UploadFileType.OPERATIONS
    source: ClassVar[str] = EntitySource.OPERATIONS_DATA

    def discovery_rows(self) -> list[Row]:
        return [*self.yesterday, *self.year_over_year]

    def validate(self) -> None:
        if not self.yesterday and not self.year_over_year:
            raise UploadValidationError("No operations data found in file.")

    def summary(self) -> dict[str, int]:
        return {
            "yesterday": len(self.yesterday),
            "year_over_year": len(self.year_over_year),
        }

    def to_raw_data(self) -> dict[str, Any]:
        return {
            "yesterday": self.yesterday,
            "yearOverYear": self.year_over_year,
        }

    @classmethod
    def from_raw_data(cls, raw: Mapping[str, Any]) -> OperationsUpload:
        return cls(
            yesterday=_rows(raw, "yesterday"),
            year_over_year=_rows(raw, "yearOverYear"),
        )


Upload = ServicesUpload | OperationsUpload

_UPLOAD_TYPES: dict[str, type[ServicesUpload] | type[OperationsUpload]] = {
    UploadFileType.SERVICES: ServicesUpload,
    UploadFileType.OPERATIONS: OperationsUpload,
}


def upload_from_raw_data(file_type: str, raw: Mapping[str, Any] | None) -> Upload:
    try:
        upload_type = _UPLOAD_TYPES[file_type]
    except KeyError as exc:
        raise UploadValidationError(f"Unknown upload file type '{file_type}'.") from exc
    return upload_type.from_raw_data(raw or {})
