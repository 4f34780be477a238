"""
app/services/confirmation_service.py

Commits a reviewed upload session.

All work for one confirmation happens inside a single transaction:
markets -> stores -> advisors -> performance records -> (rollups) -> session
status. Any failure rolls everything back and leaves the session in
pending_review.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from functools import lru_cache

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_upload_settings
from app.domain.reconciliation import (
    AdvisorDecision,
    ConfirmationDecisions,
    ConfirmationResult,
    MappingSource,
    MarketDecision,
    MatchAction,
    StoreDecision,
    StoreRef,
    store_key,
    store_ref,
)
from app.domain.uploads import OperationsUpload, Row, ServicesUpload, upload_from_raw_data
from app.logging_utils import log_session_event
from app.services.store_rollup import generate_store_rollups
from db.models.market import Market
from db.models.upload_session import UploadSession, UploadSessionStatus
from db.repositories.errors import (
    ConfirmationError,
    ConfirmationPersistenceError,
    MissingMarketMappingError,
    SessionNotFoundError,
    SessionNotPendingError,
)
from db.repositories.organization_repository import OrganizationRepository
from db.repositories.performance_repository import PerformanceRecordRepository
from db.repositories.upload_session_repository import UploadSessionRepository

logger = logging.getLogger(__name__)


def _split_name(name: str) -> tuple[str, str]:
    parts = name.split()
    if not parts:
        return name, ""
    return parts[0], " ".join(parts[1:])


def _generate_external_user_id() -> str:
    return f"advisor_{uuid.uuid4().hex[:12]}"


class _ConfirmationRun:
    """
    State for one confirmation inside an open transaction.
    """

    def __init__(self, db: Session, upload_session: UploadSession, *, generate_rollups: bool) -> None:
        self._db = db
        self._session = upload_session
        self._organization = OrganizationRepository(db)
        self._records = PerformanceRecordRepository(db)
        self._generate_rollups = generate_rollups
        self.step = "load"

    # ------------------------------------------------------------------
    # Entity resolution
    # ------------------------------------------------------------------

    def resolve_markets(self, decisions: Sequence[MarketDecision]) -> dict[str, int]:
        self.step = "markets"
        mappings: dict[str, int] = {}
        for decision in decisions:
            if decision.action == MatchAction.CREATE:
                mappings[decision.name] = self._create_market(decision).id
            elif decision.action == MatchAction.MAP:
                if decision.existing_id is None:
                    raise ConfirmationError(
                        self.step,
                        f"Market '{decision.name}' is mapped without an existing id.",
                        market=decision.name,
                    )
                mappings[decision.name] = decision.existing_id
            elif decision.action != MatchAction.IGNORE:
                raise ConfirmationError(
                    self.step,
                    f"Unsupported market action '{decision.action}'.",
                    market=decision.name,
                )
        return mappings

    def _create_market(self, decision: MarketDecision) -> Market:
        description = f"Auto-created from spreadsheet: {decision.source}" if decision.source else None
        explicit_id = decision.proposed_id
        if explicit_id is not None:
            taken = self._organization.get_market(explicit_id)
            if taken is None:
                return self._organization.insert_market(
                    name=decision.name,
                    description=description,
                    market_id=explicit_id,
                )
            if taken.name.strip().lower() == decision.name.strip().lower():
                return taken
            log_session_event(
                logger,
                logging.WARNING,
                "explicit_market_id_taken",
                self._session.id,
                market_id=explicit_id,
                existing_name=taken.name,
                requested_name=decision.name,
            )
        return self._organization.insert_market(name=decision.name, description=description)

    def resolve_stores(
        self,
        decisions: Sequence[StoreDecision],
        market_mappings: dict[str, int],
        store_codes: dict[StoreRef, str],
    ) -> dict[StoreRef, int]:
        self.step = "stores"
        mappings: dict[StoreRef, int] = {}
        for decision in decisions:
            if decision.action == MatchAction.CREATE:
                market_id = market_mappings.get(decision.market or "")
                if market_id is None:
                    raise MissingMarketMappingError(store_name=decision.name, market_name=decision.market)
                store = self._organization.insert_store(
                    name=decision.name,
                    market_id=market_id,
                    store_code=store_codes.get(decision.ref),
                )
                mappings[decision.ref] = store.id
            elif decision.action == MatchAction.MAP:
                if decision.existing_id is None:
                    raise ConfirmationError(
                        self.step,
                        f"Store '{decision.name}' is mapped without an existing id.",
                        store=decision.name,
                    )
                mappings[decision.ref] = decision.existing_id
            elif decision.action != MatchAction.IGNORE:
                raise ConfirmationError(
                    self.step,
                    f"Unsupported store action '{decision.action}'.",
                    store=decision.name,
                )
        return mappings

    def resolve_advisors(self, decisions: Sequence[AdvisorDecision]) -> dict[str, int]:
        self.step = "advisors"
        mappings: dict[str, int] = {}
        for decision in decisions:
            if decision.action == MatchAction.CREATE_USER:
                first_name, last_name = _split_name(decision.name)
                user = self._organization.insert_advisor_user(
                    external_user_id=decision.proposed_user_id or _generate_external_user_id(),
                    first_name=decision.proposed_first_name or first_name,
                    last_name=decision.proposed_last_name or last_name,
                    email=decision.proposed_email,
                )
                self._organization.upsert_advisor_mapping(spreadsheet_name=decision.name, user_id=user.id)
                mappings[decision.name] = user.id
            elif decision.action == MatchAction.MAP_USER:
                if decision.existing_user_id is None:
                    raise ConfirmationError(
                        self.step,
                        f"Advisor '{decision.name}' is mapped without an existing user id.",
                        advisor=decision.name,
                    )
                mappings[decision.name] = decision.existing_user_id
                if decision.mapping_source != MappingSource.ADVISOR_MAPPINGS_TABLE:
                    self._organization.upsert_advisor_mapping(
                        spreadsheet_name=decision.name,
                        user_id=decision.existing_user_id,
                    )
            elif decision.action != MatchAction.IGNORE:
                raise ConfirmationError(
                    self.step,
                    f"Unsupported advisor action '{decision.action}'.",
                    advisor=decision.name,
                )
        return mappings

    # ------------------------------------------------------------------
    # Record writes
    # ------------------------------------------------------------------

    def write_services(
        self,
        upload: ServicesUpload,
        market_mappings: dict[str, int],
        store_mappings: dict[StoreRef, int],
        advisor_mappings: dict[str, int],
    ) -> tuple[int, int]:
        self.step = "records"
        processed = 0
        for row in upload.employees:
            employee = row.get("employeeName")
            if not employee:
                continue
            market_id = market_mappings.get(row.get("market") or "")
            store_id = store_mappings.get(store_ref(row.get("market"), row.get("storeName")))
            advisor_id = advisor_mappings.get(employee)
            self._add_record(row, market_id=market_id, store_id=store_id, advisor_user_id=advisor_id)
            if advisor_id is not None and store_id is not None:
                self._organization.assign_user_to_store(user_id=advisor_id, store_id=store_id)
            if advisor_id is not None and market_id is not None:
                self._organization.assign_user_to_market(user_id=advisor_id, market_id=market_id)
            processed += 1

        for row in upload.stores:
            market_id = market_mappings.get(row.get("market") or "")
            store_id = store_mappings.get(store_ref(row.get("market"), row.get("storeName")))
            if market_id is None or store_id is None:
                logger.warning(
                    "Skipping store-level row without resolved market/store session_id=%s store=%r market=%r",
                    self._session.id,
                    row.get("storeName"),
                    row.get("market"),
                )
                continue
            self._add_record(row, market_id=market_id, store_id=store_id)
            processed += 1

        for row in upload.markets:
            market_id = market_mappings.get(row.get("market") or "")
            if market_id is None:
                logger.warning(
                    "Skipping market-level row without resolved market session_id=%s market=%r",
                    self._session.id,
                    row.get("market"),
                )
                continue
            self._add_record(row, market_id=market_id)
            processed += 1

        rollups = 0
        if self._generate_rollups:
            self.step = "rollups"
            rollups = generate_store_rollups(
                self._db,
                report_date=self._session.report_date,
                upload_session_id=self._session.id,
            )
        return processed, rollups

    def write_operations(
        self,
        upload: OperationsUpload,
        market_mappings: dict[str, int],
        store_mappings: dict[StoreRef, int],
    ) -> int:
        self.step = "records"
        processed = 0
        for row in upload.discovery_rows():
            self._add_record(
                row,
                market_id=market_mappings.get(row.get("market") or ""),
                store_id=store_mappings.get(store_ref(row.get("market"), row.get("storeName"))),
            )
            processed += 1
        return processed

    def _add_record(
        self,
        row: Row,
        *,
        market_id: int | None = None,
        store_id: int | None = None,
        advisor_user_id: int | None = None,
    ) -> None:
        self._records.add_record(
            upload_date=self._session.report_date,
            data_type=self._session.file_type,
            market_id=market_id,
            store_id=store_id,
            advisor_user_id=advisor_user_id,
            upload_session_id=self._session.id,
            data=row,
        )


class UploadConfirmationService:
    """
    Resolves human decisions to foreign keys and writes performance records.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | None = None,
        generate_store_rollups: bool = False,
    ) -> None:
        if session_factory is None:
            from db.session import get_session_factory

            self._session_factory = get_session_factory()
        else:
            self._session_factory = session_factory
        self._generate_store_rollups = generate_store_rollups

    def confirm(self, session_id: uuid.UUID, decisions: ConfirmationDecisions) -> ConfirmationResult:
        with self._session_factory() as db:
            with db.begin():
                result = self._confirm(db, session_id, decisions)

        log_session_event(
            logger,
            logging.INFO,
            "session_confirmed",
            session_id,
            processed_count=result.processed_count,
            markets=len(result.market_mappings),
            stores=len(result.store_mappings),
            advisors=len(result.advisor_mappings),
            rollups=result.rollup_count,
        )
        return result

    def _confirm(
        self,
        db: Session,
        session_id: uuid.UUID,
        decisions: ConfirmationDecisions,
    ) -> ConfirmationResult:
        sessions = UploadSessionRepository(db)
        upload_session = sessions.get_session(session_id)
        if upload_session is None:
            raise SessionNotFoundError(session_id)
        if upload_session.status != UploadSessionStatus.PENDING_REVIEW:
            raise SessionNotPendingError(session_id, upload_session.status)

        upload = upload_from_raw_data(upload_session.file_type, upload_session.raw_data)
        run = _ConfirmationRun(db, upload_session, generate_rollups=self._generate_store_rollups)
        rollups = 0
        advisor_mappings: dict[str, int] = {}

        try:
            market_mappings = run.resolve_markets(decisions.markets)
            store_mappings = run.resolve_stores(
                decisions.stores,
                market_mappings,
                self._store_codes(upload.discovery_rows()),
            )
            if isinstance(upload, ServicesUpload):
                advisor_mappings = run.resolve_advisors(decisions.advisors)
                processed, rollups = run.write_services(
                    upload,
                    market_mappings,
                    store_mappings,
                    advisor_mappings,
                )
            else:
                processed = run.write_operations(upload, market_mappings, store_mappings)

            run.step = "session"
            if sessions.mark_processed(session_id=session_id) == 0:
                raise SessionNotPendingError(session_id, None)
        except SQLAlchemyError as exc:
            logger.exception("Confirmation failed session_id=%s step=%s", session_id, run.step)
            raise ConfirmationPersistenceError(run.step) from exc

        return ConfirmationResult(
            session_id=session_id,
            processed_count=processed,
            market_mappings=dict(market_mappings),
            store_mappings={store_key(*ref): store_id for ref, store_id in store_mappings.items()},
            advisor_mappings=dict(advisor_mappings),
            rollup_count=rollups,
        )

    @staticmethod
    def _store_codes(rows: Sequence[Row]) -> dict[StoreRef, str]:
        codes: dict[StoreRef, str] = {}
        for row in rows:
            code = row.get("storeId")
            if code:
                codes.setdefault(store_ref(row.get("market"), row.get("storeName")), str(code))
        return codes


@lru_cache(maxsize=1)
def get_upload_confirmation_service() -> UploadConfirmationService:
    settings = get_upload_settings()
    return UploadConfirmationService(generate_store_rollups=settings.generate_store_rollups)
