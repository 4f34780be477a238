from __future__ import annotations

from db.models import PerformanceRecord
from db.session import missing_tables


def test_no_tables_missing_after_create_all(engine) -> None:
    assert missing_tables(engine) == []


def test_dropped_table_is_reported(engine) -> None:
    PerformanceRecord.__table__.drop(engine)

    assert missing_tables(engine) == ["performance_records"]
