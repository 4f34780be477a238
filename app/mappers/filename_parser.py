"""
app/mappers/filename_parser.py

Parses upload filenames into the (market id, file date, file kind) triple that
seeds a session.

Supported formats:
    "<marketId>-YYYY-MM-DD-<time>-<Kind>-<hash>.xlsx"
        e.g. "694-2025-07-24-6am-Services-YlxBy3y5-1753351620.xlsx"
    "<Market> - <System> - <Kind> - YYYY-MM-DD.xlsx"  (legacy)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta

from db.repositories.errors import UploadValidationError

_EXTENSION = re.compile(r"\.xlsx?$", re.IGNORECASE)
_NEW_FORMAT = re.compile(r"^\d+-.+")
_ISO_DATE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")


class FilenameFormat:
    CURRENT = "new"
    LEGACY = "legacy"


@dataclass(frozen=True)
class FileInfo:
    file_kind: str
    file_date: date | None
    format: str
    market_id: int | None = None
    market_name: str | None = None
    system: str | None = None
    time: str | None = None
    hash: str | None = None

    @property
    def report_date(self) -> date | None:
        """
        Month-to-date exports cover through the prior day.
        """

        if self.file_date is None:
            return None
        return self.file_date - timedelta(days=1)

    def to_dict(self) -> dict[str, object]:
        return {
            "market_id": self.market_id,
            "market_name": self.market_name,
            "file_date": self.file_date.isoformat() if self.file_date else None,
            "report_date": self.report_date.isoformat() if self.report_date else None,
            "file_kind": self.file_kind,
            "format": self.format,
            "time": self.time,
            "hash": self.hash,
        }


def _safe_date(year: str, month: str, day: str) -> date | None:
    try:
        return date(int(year), int(month), int(day))
    except ValueError:
        return None


def parse_upload_filename(filename: str) -> FileInfo:
    """
    Parse ``filename`` or raise ``UploadValidationError`` describing the
    expected format.
    """

    base = _EXTENSION.sub("", (filename or "").strip())

    if _NEW_FORMAT.match(base):
        tokens = base.split("-")
        if len(tokens) >= 6:
            market_id, year, month, day, time, kind = tokens[:6]
            if len(year) == 4 and len(month) == 2 and len(day) == 2:
                file_date = _safe_date(year, month, day)
                if file_date is not None:
                    return FileInfo(
                        file_kind=kind.lower(),
                        file_date=file_date,
                        format=FilenameFormat.CURRENT,
                        market_id=int(market_id),
                        market_name=f"Market {market_id}",
                        time=time,
                        hash="-".join(tokens[6:]),
                    )
        raise UploadValidationError(
            'Invalid filename format. Expected: "market_id-YYYY-MM-DD-time-type-hash.xlsx"',
            filename=filename,
        )

    parts = base.split(" - ")
    if len(parts) >= 4:
        match = _ISO_DATE.search(parts[-1])
        return FileInfo(
            file_kind=parts[2].strip().lower(),
            file_date=_safe_date(*match.groups()) if match else None,
            format=FilenameFormat.LEGACY,
            market_name=parts[0].strip(),
            system=parts[1].strip(),
        )

    raise UploadValidationError(
        'Invalid filename format. Expected: "Market - System - Type - YYYY-MM-DD.xlsx"',
        filename=filename,
    )
