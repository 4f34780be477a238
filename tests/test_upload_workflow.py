"""
tests/test_upload_workflow.py

End-to-end discovery -> review -> confirmation against an in-memory SQLite
database created from the ORM metadata.

Coverage
--------
- Services happy path (create everything, brake-flush correction, assignments)
- Operations commit with store codes
- Atomic rollback when a decision cannot be resolved
- Double confirmation and cancellation of processed sessions
- Advisor mapping memory and auto-confirm on re-upload
- Explicit market ids (free, same name, different name)
- Store-level sheet rows and generated rollups
- Upload validation failures
"""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy import func, select

from app.config import UploadSettings
from app.domain.reconciliation import (
    AdvisorDecision,
    ConfirmationDecisions,
    MappingSource,
    MarketDecision,
    MatchAction,
    StoreDecision,
)
from app.services.confirmation_service import UploadConfirmationService
from app.services.upload_discovery_service import UploadDiscoveryService
from app.services.upload_session_service import UploadSessionService
from db.models import (
    AdvisorMapping,
    Market,
    PerformanceRecord,
    Store,
    UploadSessionStatus,
    User,
    UserMarketAssignment,
    UserStoreAssignment,
)
from db.repositories.errors import (
    ConfirmationError,
    MissingMarketMappingError,
    SessionNotFoundError,
    SessionNotPendingError,
    UploadValidationError,
)
from db.repositories.performance_repository import PerformanceRecordRepository

SERVICES_FILE = "694-2025-07-24-6am-Services-YlxBy3y5.xlsx"
OPERATIONS_FILE = "694-2025-07-24-6am-Operations-Qk2a.xlsx"

SERVICES_HEADER = [
    "Market",
    "Store",
    "Employee",
    "Sales",
    "Invoices",
    "Brake Service",
    "Brake Flush",
    "Brake Flush to Service %",
]
JANE_ROW = ["Atlanta", "Main St", "Jane Doe", 1000, 10, 120, 45, 45]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _count(session_factory, model) -> int:
    with session_factory() as db:
        return db.scalar(select(func.count()).select_from(model))


def _services(session_factory, settings: UploadSettings, *, rollups: bool = False):
    confirmation = UploadConfirmationService(
        session_factory=session_factory,
        generate_store_rollups=rollups,
    )
    discovery = UploadDiscoveryService(
        settings=settings,
        session_factory=session_factory,
        confirmation_service=confirmation,
    )
    return discovery, confirmation


def _discover_jane(discovery, workbook, filename: str = SERVICES_FILE, **extra_sheets):
    sheets = {"Service Writers": [SERVICES_HEADER, JANE_ROW], **extra_sheets}
    return discovery.discover_services(filename=filename, source=workbook(sheets), uploaded_by=42)


def _accept_all(result) -> ConfirmationDecisions:
    return ConfirmationDecisions.from_annotations(result.discovered)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


def test_services_upload_creates_entities_and_records(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings)

    result = _discover_jane(discovery, workbook)

    assert result.requires_review
    assert result.report_date == date(2025, 7, 23)
    assert [m.action for m in result.discovered.markets] == [MatchAction.CREATE]
    assert result.discovered.markets[0].annotation.proposed_id == 694
    assert [s.action for s in result.discovered.stores] == [MatchAction.CREATE]
    assert [a.action for a in result.discovered.advisors] == [MatchAction.CREATE_USER]
    assert result.needs_review()["advisors"] == ["Jane Doe"]
    assert any(a["kind"] == "derived_count_corrected" for a in result.anomalies)

    outcome = confirmation.confirm(result.session_id, _accept_all(result))

    assert outcome.processed_count == 1
    assert outcome.market_mappings == {"Atlanta": 694}
    assert list(outcome.store_mappings) == ["Atlanta:Main St"]
    assert _count(session_factory, Market) == 1
    assert _count(session_factory, Store) == 1
    assert _count(session_factory, User) == 1
    assert _count(session_factory, AdvisorMapping) == 1
    assert _count(session_factory, UserStoreAssignment) == 1
    assert _count(session_factory, UserMarketAssignment) == 1

    with session_factory() as db:
        user = db.scalars(select(User)).one()
        assert (user.first_name, user.last_name, user.email) == ("Jane", "Doe", None)
        assert user.external_user_id.startswith("advisor_")

        record = db.scalars(select(PerformanceRecord)).one()
        assert record.market_id == 694
        assert record.store_id == outcome.store_mappings["Atlanta:Main St"]
        assert record.advisor_user_id == user.id
        assert record.upload_session_id == result.session_id
        assert record.upload_date == date(2025, 7, 23)
        assert record.data["dataLevel"] == "employee"
        assert record.data["brakeFlush"] == 54

    snapshot = UploadSessionService(session_factory=session_factory).get(result.session_id)
    assert snapshot.status == UploadSessionStatus.PROCESSED
    assert snapshot.processed_at is not None
    assert snapshot.uploaded_by == 42


def test_failed_confirmation_rolls_back_everything(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings)
    result = _discover_jane(discovery, workbook)

    decisions = ConfirmationDecisions(
        markets=(MarketDecision(name="Atlanta", action=MatchAction.CREATE, proposed_id=694),),
        stores=(StoreDecision(name="Main St", market="Nowhere", action=MatchAction.CREATE),),
        advisors=(AdvisorDecision(name="Jane Doe", action=MatchAction.CREATE_USER),),
    )

    with pytest.raises(MissingMarketMappingError) as excinfo:
        confirmation.confirm(result.session_id, decisions)

    assert str(excinfo.value) == "Market mapping not found for store: Main St"
    assert excinfo.value.to_dict()["context"]["step"] == "stores"
    assert _count(session_factory, Market) == 0
    assert _count(session_factory, PerformanceRecord) == 0
    snapshot = UploadSessionService(session_factory=session_factory).get(result.session_id)
    assert snapshot.status == UploadSessionStatus.PENDING_REVIEW


def test_map_decision_without_id_is_rejected(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings)
    result = _discover_jane(discovery, workbook)

    decisions = ConfirmationDecisions(markets=(MarketDecision(name="Atlanta", action=MatchAction.MAP),))

    with pytest.raises(ConfirmationError) as excinfo:
        confirmation.confirm(result.session_id, decisions)

    assert excinfo.value.step == "markets"
    assert _count(session_factory, PerformanceRecord) == 0


def test_second_confirmation_is_rejected(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings)
    result = _discover_jane(discovery, workbook)
    confirmation.confirm(result.session_id, _accept_all(result))

    with pytest.raises(SessionNotPendingError):
        confirmation.confirm(result.session_id, _accept_all(result))

    assert _count(session_factory, PerformanceRecord) == 1


def test_cancel_only_affects_pending_sessions(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings)
    sessions = UploadSessionService(session_factory=session_factory)
    processed = _discover_jane(discovery, workbook)
    confirmation.confirm(processed.session_id, _accept_all(processed))
    pending = _discover_jane(discovery, workbook)

    assert sessions.cancel(processed.session_id) == 0
    assert sessions.get(processed.session_id).status == UploadSessionStatus.PROCESSED
    assert sessions.cancel(pending.session_id) == 1
    assert sessions.get(pending.session_id).status == UploadSessionStatus.CANCELLED
    assert sessions.cancel(pending.session_id) == 0

    with pytest.raises(SessionNotPendingError):
        confirmation.confirm(pending.session_id, _accept_all(pending))


def test_unknown_session(session_factory) -> None:
    missing = uuid.uuid4()
    with pytest.raises(SessionNotFoundError):
        UploadSessionService(session_factory=session_factory).get(missing)
    with pytest.raises(SessionNotFoundError):
        UploadConfirmationService(session_factory=session_factory).confirm(missing, ConfirmationDecisions())


def test_reupload_reuses_advisor_mapping_and_auto_confirms(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings)
    first = _discover_jane(discovery, workbook)
    first_outcome = confirmation.confirm(first.session_id, _accept_all(first))

    auto_discovery, _ = _services(session_factory, UploadSettings(auto_confirm=True))
    second = _discover_jane(auto_discovery, workbook, filename="694-2025-07-25-6am-Services-b7.xlsx")

    advisor = second.discovered.advisors[0]
    assert advisor.action == MatchAction.MAP_USER
    assert advisor.annotation.score == 1.0
    assert advisor.annotation.mapping_source == MappingSource.ADVISOR_MAPPINGS_TABLE
    assert advisor.annotation.existing_id == first_outcome.advisor_mappings["Jane Doe"]
    assert second.auto_confirmed
    assert not second.requires_review
    assert second.confirmation.processed_count == 1
    assert _count(session_factory, User) == 1
    assert _count(session_factory, Store) == 1
    assert _count(session_factory, PerformanceRecord) == 2
    assert _count(session_factory, UserStoreAssignment) == 1


def test_sessions_are_listed_with_candidate_counts(session_factory, manual_settings, workbook) -> None:
    discovery, _ = _services(session_factory, manual_settings)
    _discover_jane(discovery, workbook)
    _discover_jane(discovery, workbook)

    sessions = UploadSessionService(session_factory=session_factory)
    listed = sessions.list_sessions(status=UploadSessionStatus.PENDING_REVIEW)

    assert len(listed) == 2
    assert listed[0].candidate_counts() == {"markets": 1, "stores": 1, "advisors": 1}
    assert sessions.list_sessions(status=UploadSessionStatus.PROCESSED) == []


# ---------------------------------------------------------------------------
# Explicit market ids
# ---------------------------------------------------------------------------


def test_explicit_market_id_taken_by_other_market_falls_back(session_factory, manual_settings, workbook) -> None:
    with session_factory() as db:
        db.add(Market(id=694, name="Boston"))
        db.commit()
    discovery, confirmation = _services(session_factory, manual_settings)
    result = _discover_jane(discovery, workbook)

    outcome = confirmation.confirm(result.session_id, _accept_all(result))

    assert outcome.market_mappings["Atlanta"] != 694
    with session_factory() as db:
        assert db.get(Market, 694).name == "Boston"
        assert db.get(Market, outcome.market_mappings["Atlanta"]).name == "Atlanta"


def test_explicit_market_id_with_same_name_is_reused(session_factory, manual_settings, workbook) -> None:
    with session_factory() as db:
        db.add(Market(id=694, name="ATLANTA"))
        db.commit()
    discovery, confirmation = _services(session_factory, manual_settings)
    result = _discover_jane(discovery, workbook)

    decisions = ConfirmationDecisions(
        markets=(MarketDecision(name="Atlanta", action=MatchAction.CREATE, proposed_id=694),),
        stores=(StoreDecision(name="Main St", market="Atlanta", action=MatchAction.CREATE),),
        advisors=(AdvisorDecision(name="Jane Doe", action=MatchAction.IGNORE),),
    )
    outcome = confirmation.confirm(result.session_id, decisions)

    assert outcome.market_mappings == {"Atlanta": 694}
    assert outcome.advisor_mappings == {}
    assert _count(session_factory, Market) == 1
    assert _count(session_factory, User) == 0
    with session_factory() as db:
        record = db.scalars(select(PerformanceRecord)).one()
        assert record.market_id == 694
        assert record.advisor_user_id is None


# ---------------------------------------------------------------------------
# Store-level rows and rollups
# ---------------------------------------------------------------------------


def test_store_and_market_sheet_rows_are_committed(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings, rollups=True)
    result = _discover_jane(
        discovery,
        workbook,
        Stores=[["Market", "Store", "Sales"], ["Atlanta", "Main St", 5000], ["Atlanta", "Unknown", 10]],
        Markets=[["Market", "Sales"], ["Atlanta", 90000]],
    )

    outcome = confirmation.confirm(result.session_id, _accept_all(result))

    # the unknown store row is skipped; the sheet row wins over a rollup
    assert outcome.processed_count == 3
    assert outcome.rollup_count == 0
    with session_factory() as db:
        records = PerformanceRecordRepository(db).list_for_session(result.session_id)
    assert sorted(r.data["dataLevel"] for r in records) == ["employee", "market", "store"]
    assert all(r.upload_session_id == result.session_id for r in records)
    assert _count(session_factory, PerformanceRecord) == len(records)


def test_store_names_with_colons_stay_distinct(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings)
    result = discovery.discover_services(
        filename=SERVICES_FILE,
        source=workbook(
            {
                "Service Writers": [
                    SERVICES_HEADER,
                    ["A:B", "C", "Jane Doe", 1000, 10, 120, 45, 45],
                    ["A", "B:C", "John Roe", 500, 5, 80, 46, 15],
                ]
            }
        ),
    )

    assert [(s.market, s.name) for s in result.discovered.stores] == [("A:B", "C"), ("A", "B:C")]

    outcome = confirmation.confirm(result.session_id, _accept_all(result))

    assert outcome.processed_count == 2
    assert _count(session_factory, Store) == 2
    with session_factory() as db:
        records = PerformanceRecordRepository(db).list_for_session(result.session_id)
        stores = {r.data["storeName"]: db.get(Store, r.store_id) for r in records}
        assert {name: store.name for name, store in stores.items()} == {"C": "C", "B:C": "B:C"}
        assert all(stores[r.data["storeName"]].market_id == r.market_id for r in records)


def test_store_rollup_is_generated_from_advisor_rows(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings, rollups=True)
    result = discovery.discover_services(
        filename=SERVICES_FILE,
        source=workbook(
            {
                "Service Writers": [
                    SERVICES_HEADER,
                    JANE_ROW,
                    ["Atlanta", "Main St", "John Roe", 500, 5, 80, 46, 15],
                ]
            }
        ),
    )

    outcome = confirmation.confirm(result.session_id, _accept_all(result))

    assert outcome.processed_count == 2
    assert outcome.rollup_count == 1
    with session_factory() as db:
        rollup = db.scalars(
            select(PerformanceRecord).where(PerformanceRecord.advisor_user_id.is_(None))
        ).one()
    assert rollup.data["generated"] is True
    assert rollup.data["advisorCount"] == 2
    assert rollup.data["sales"] == 1500
    assert rollup.data["invoices"] == 15
    assert rollup.data["brakeFlush"] == 100
    assert rollup.data["brakeService"] == 200
    assert rollup.data["brakeFlushToServicePercent"] == 50
    assert rollup.data["avgSpend"] == 100


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def test_operations_upload_commits_store_level_rows(session_factory, manual_settings, workbook) -> None:
    discovery, confirmation = _services(session_factory, manual_settings)
    result = discovery.discover_operations(
        filename=OPERATIONS_FILE,
        source=workbook(
            {
                "Yesterday": [["Store ID", "Market", "Store", "Sales"], ["S-1", "Atlanta", "Main St", 500]],
                "Year over Year": [["Market", "Store", "GP %"], ["Atlanta", "Main St", "40%"]],
            }
        ),
    )

    assert result.summary["yesterday_rows"] == 1
    assert result.summary["year_over_year_rows"] == 1
    assert result.discovered.advisors == []

    outcome = confirmation.confirm(result.session_id, _accept_all(result))

    assert outcome.processed_count == 2
    store_id = outcome.store_mappings["Atlanta:Main St"]
    with session_factory() as db:
        assert db.get(Store, store_id).store_code == "S-1"
        records = list(db.scalars(select(PerformanceRecord).order_by(PerformanceRecord.id)))
    assert [r.data["reportType"] for r in records] == ["yesterday", "yoy"]
    assert all(r.store_id == store_id and r.market_id == 694 for r in records)
    assert records[1].data["storeId"] == "main_st"
    assert records[1].data["yoyMetrics"] == {"GP %": 40.0}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def test_wrong_file_kind_is_rejected(session_factory, manual_settings, workbook) -> None:
    discovery, _ = _services(session_factory, manual_settings)

    with pytest.raises(UploadValidationError):
        _discover_jane(discovery, workbook, filename=OPERATIONS_FILE)


def test_filename_without_report_date_is_rejected(session_factory, manual_settings, workbook) -> None:
    discovery, _ = _services(session_factory, manual_settings)

    with pytest.raises(UploadValidationError):
        _discover_jane(discovery, workbook, filename="Atlanta - Tekmetric - Services - latest.xlsx")


def test_services_file_without_employee_rows_is_rejected(session_factory, manual_settings, workbook) -> None:
    discovery, _ = _services(session_factory, manual_settings)

    with pytest.raises(UploadValidationError, match="No employee data"):
        discovery.discover_services(
            filename=SERVICES_FILE,
            source=workbook({"Service Writers": [SERVICES_HEADER]}),
        )

    assert UploadSessionService(session_factory=session_factory).list_sessions() == []
