"""
app/services/upload_discovery_service.py

Discovery half of the upload workflow.

An uploaded workbook is parsed with the effective field-mapping schema, its
markets/stores/advisors are discovered and annotated against existing records,
and the result is persisted as a pending_review session. When every candidate
is already mapped and auto-confirm is enabled, the session is committed
straight away through ``UploadConfirmationService``; a failed auto-confirm is
logged and leaves the session pending for manual review.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import BinaryIO

from sqlalchemy.orm import Session, sessionmaker

from app.config import UploadSettings, get_upload_settings
from app.domain.reconciliation import ConfirmationDecisions, ConfirmationResult, DiscoveryResult
from app.logging_utils import action_counts, log_session_event
from app.mappers.field_schema import FieldSchema
from app.mappers.filename_parser import FileInfo, parse_upload_filename
from app.mappers.sheet_extractor import SheetExtractor
from app.mappers.upload_parser import (
    OPERATIONS_SHEETS,
    SERVICES_SHEETS,
    ParsedUpload,
    parse_operations_tables,
    parse_services_tables,
)
from app.mappers.workbook_reader import read_workbook
from app.repositories.field_mapping_repository import FieldMappingRepository
from app.services.confirmation_service import UploadConfirmationService
from app.services.entity_discovery import discover_entities
from app.services.entity_matching_service import EntityMatchingService, load_existing_entities
from app.services.fuzzy_matcher import FuzzyMatcher
from db.models.upload_session import UploadFileType
from db.repositories.errors import ReconciliationError, UploadValidationError
from db.repositories.upload_session_repository import UploadSessionRepository

logger = logging.getLogger(__name__)


class UploadDiscoveryService:
    """
    Turns one uploaded workbook into a reviewable upload session.
    """

    def __init__(
        self,
        *,
        settings: UploadSettings | None = None,
        session_factory: sessionmaker[Session] | None = None,
        confirmation_service: UploadConfirmationService | None = None,
        extractor: SheetExtractor | None = None,
    ) -> None:
        self._settings = settings or get_upload_settings()
        if session_factory is None:
            from db.session import get_session_factory

            session_factory = get_session_factory()
        self._session_factory = session_factory
        self._confirmation_service = confirmation_service or UploadConfirmationService(
            session_factory=session_factory,
            generate_store_rollups=self._settings.generate_store_rollups,
        )
        self._extractor = extractor or SheetExtractor()
        self._matching = EntityMatchingService(
            matcher=FuzzyMatcher(threshold=self._settings.match_threshold),
            auto_map_threshold=self._settings.auto_map_threshold,
        )

    def discover_services(
        self,
        *,
        filename: str,
        source: str | BinaryIO,
        uploaded_by: int | None = None,
    ) -> DiscoveryResult:
        return self._discover(
            file_kind=UploadFileType.SERVICES,
            filename=filename,
            source=source,
            uploaded_by=uploaded_by,
        )

    def discover_operations(
        self,
        *,
        filename: str,
        source: str | BinaryIO,
        uploaded_by: int | None = None,
    ) -> DiscoveryResult:
        return self._discover(
            file_kind=UploadFileType.OPERATIONS,
            filename=filename,
            source=source,
            uploaded_by=uploaded_by,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _discover(
        self,
        *,
        file_kind: str,
        filename: str,
        source: str | BinaryIO,
        uploaded_by: int | None,
    ) -> DiscoveryResult:
        file_info = self._check_filename(filename, file_kind)
        report_date = file_info.report_date
        if report_date is None:
            raise UploadValidationError(
                "Could not determine report date from filename.",
                filename=filename,
            )

        with self._session_factory() as db:
            with db.begin():
                schema = FieldMappingRepository(db).get_effective_schema(
                    file_kind=file_kind,
                    market_id=file_info.market_id,
                )
                parsed = self._parse(file_kind, source, schema)
                parsed.upload.validate()

                discovered = discover_entities(parsed.upload.discovery_rows(), parsed.upload.source)
                existing = load_existing_entities(db)
                annotated = self._matching.annotate(
                    discovered,
                    existing,
                    proposed_market_id=file_info.market_id,
                )

                upload_session = UploadSessionRepository(db).create_session(
                    filename=filename,
                    file_type=file_kind,
                    report_date=report_date,
                    uploaded_by=uploaded_by,
                    market_id=file_info.market_id,
                    discovered_markets=[item.to_payload() for item in annotated.markets],
                    discovered_stores=[item.to_payload() for item in annotated.stores],
                    discovered_advisors=[item.to_payload() for item in annotated.advisors],
                    raw_data=parsed.upload.to_raw_data(),
                )
                session_id = upload_session.id

        summary = {
            "markets": len(annotated.markets),
            "stores": len(annotated.stores),
            "advisors": len(annotated.advisors),
            **{f"{sheet}_rows": count for sheet, count in parsed.upload.summary().items()},
        }
        log_session_event(
            logger,
            logging.INFO,
            "session_created",
            session_id,
            file_type=file_kind,
            filename=filename,
            report_date=report_date,
            anomalies=len(parsed.anomalies),
            **summary,
            **action_counts(
                {"markets": annotated.markets, "stores": annotated.stores, "advisors": annotated.advisors}
            ),
        )

        confirmation: ConfirmationResult | None = None
        if self._settings.auto_confirm and annotated.all_mapped():
            try:
                confirmation = self._confirmation_service.confirm(
                    session_id,
                    ConfirmationDecisions.from_annotations(annotated),
                )
            except ReconciliationError as exc:
                log_session_event(
                    logger,
                    logging.WARNING,
                    "auto_confirm_failed",
                    session_id,
                    error=exc.to_dict(),
                )

        return DiscoveryResult(
            session_id=session_id,
            file_type=file_kind,
            file_info=file_info.to_dict(),
            report_date=report_date,
            discovered=annotated,
            existing=existing,
            summary=summary,
            anomalies=[anomaly.to_dict() for anomaly in parsed.anomalies],
            auto_confirmed=confirmation is not None,
            confirmation=confirmation,
        )

    @staticmethod
    def _check_filename(filename: str, file_kind: str) -> FileInfo:
        file_info = parse_upload_filename(filename)
        if file_info.file_kind != file_kind:
            raise UploadValidationError(
                f"Expected a {file_kind} file but the filename names '{file_info.file_kind}'.",
                filename=filename,
            )
        return file_info

    def _parse(self, file_kind: str, source: str | BinaryIO, schema: FieldSchema) -> ParsedUpload:
        if file_kind == UploadFileType.SERVICES:
            tables = read_workbook(source, SERVICES_SHEETS)
            return parse_services_tables(tables, schema, self._extractor)
        tables = read_workbook(source, OPERATIONS_SHEETS)
        return parse_operations_tables(tables, schema, self._extractor)


@lru_cache(maxsize=1)
def get_upload_discovery_service() -> UploadDiscoveryService:
    return UploadDiscoveryService()
