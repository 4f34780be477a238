from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

logger = logging.getLogger(__name__)

_RATIO_VARIABLES = ("UPLOAD_MATCH_THRESHOLD", "UPLOAD_AUTO_MAP_THRESHOLD")


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - A PostgreSQL database URL must be configured.
    - Match thresholds, when set, must be numbers between 0 and 1.
    - UPLOAD_MAX_FILE_BYTES, when set, must be a positive integer.
    """

    from db.config import load_env_files, resolve_database_url

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    try:
        database_url = resolve_database_url()
    except RuntimeError as exc:
        errors.append(str(exc))
    else:
        if not database_url.startswith("postgresql"):
            errors.append("Database URL must point at PostgreSQL; SQLite URLs are not permitted.")

    # --- Matching thresholds --------------------------------------------
    for name in _RATIO_VARIABLES:
        raw_value = os.getenv(name)
        if raw_value is None:
            continue
        try:
            ratio = float(raw_value)
        except ValueError:
            errors.append(f"{name}='{raw_value}' is not a number.")
            continue
        if not 0.0 <= ratio <= 1.0:
            errors.append(f"{name}={ratio} must be between 0 and 1.")

    # --- Upload limit ---------------------------------------------------
    max_bytes = os.getenv("UPLOAD_MAX_FILE_BYTES")
    if max_bytes is not None and (not max_bytes.strip().isdigit() or int(max_bytes) <= 0):
        errors.append(f"UPLOAD_MAX_FILE_BYTES='{max_bytes}' must be a positive integer.")

    if errors:
        raise RuntimeError(
            "Startup validation failed; missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    from db.session import SessionLocal

    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Every table registered on Base.metadata must exist in the database.
    Missing tables abort startup; migrations are never run from here.
    """
    from db.session import get_engine, missing_tables

    missing = missing_tables(get_engine())

    if missing:
        logger.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(missing),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(missing)}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema before serving traffic."""
    _check_db()
    logger.info("Database connectivity confirmed")
    _check_schema()
    logger.info("Database schema validated")
    yield


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Shop Performance Upload API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import field_mappings_router, uploads_router

    application.include_router(uploads_router)
    application.include_router(field_mappings_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
