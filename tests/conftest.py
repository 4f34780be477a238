"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database built from the ORM metadata and
helpers for writing small Excel workbooks.
"""

from __future__ import annotations

import io
from collections.abc import Iterator, Mapping, Sequence
from typing import Any

import pandas as pd
import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401  registers every table on Base.metadata
from app.config import UploadSettings
from db.base import Base


@pytest.fixture()
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=engine,
        class_=Session,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def manual_settings() -> UploadSettings:
    """Settings with auto-confirm off so every discovery stays pending."""
    return UploadSettings(auto_confirm=False)


def build_workbook(sheets: Mapping[str, Sequence[Sequence[Any]]]) -> io.BytesIO:
    """
    Write ``{sheet name: [header row, *data rows]}`` to an in-memory .xlsx.
    """

    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(list(rows)).to_excel(writer, sheet_name=name, header=False, index=False)
    buffer.seek(0)
    return buffer


@pytest.fixture()
def workbook():
    return build_workbook
