from __future__ import annotations

import json
import logging
import uuid
from types import SimpleNamespace

from app.logging_utils import action_counts, log_session_event

logger = logging.getLogger("tests.upload_events")


def test_session_event_carries_string_session_id(caplog) -> None:
    session_id = uuid.uuid4()

    with caplog.at_level(logging.INFO, logger=logger.name):
        log_session_event(logger, logging.INFO, "session_cancelled", session_id, reason="user")

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload == {"event": "session_cancelled", "reason": "user", "session_id": str(session_id)}


def test_disabled_level_emits_nothing(caplog) -> None:
    with caplog.at_level(logging.WARNING, logger=logger.name):
        log_session_event(logger, logging.DEBUG, "session_created", "abc")

    assert caplog.records == []


def test_action_counts_per_kind() -> None:
    candidates = {
        "markets": [SimpleNamespace(action="map")],
        "stores": [SimpleNamespace(action="create"), SimpleNamespace(action="create")],
        "advisors": [SimpleNamespace(action="map_user"), SimpleNamespace(action="ignore")],
    }

    assert action_counts(candidates) == {
        "markets_map": 1,
        "stores_create": 2,
        "advisors_ignore": 1,
        "advisors_map_user": 1,
    }
