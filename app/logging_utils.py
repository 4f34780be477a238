"""
Structured logging helpers for upload workflows.

Every line is one compact JSON object carrying an ``event`` name. Events that
belong to an upload session go through ``log_session_event`` so the
``session_id`` field is always present and always a string.
"""

from __future__ import annotations

import json
import logging
import uuid
from collections import Counter
from collections.abc import Iterable, Mapping
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.

    Nothing is serialized when ``level`` is disabled for ``logger``, so
    per-cell events stay cheap on large sheets.
    """

    if not logger.isEnabledFor(level):
        return
    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))


def log_session_event(
    logger: logging.Logger,
    level: int,
    event: str,
    session_id: uuid.UUID | str,
    **fields: Any,
) -> None:
    log_event(logger, level, event, session_id=str(session_id), **fields)


def action_counts(candidates: Mapping[str, Iterable[Any]]) -> dict[str, int]:
    """
    Flatten ``{"markets": [...], ...}`` of annotated candidates into
    ``{"markets_create": 1, "markets_map": 2, ...}`` log fields.
    """

    counts: dict[str, int] = {}
    for kind, entities in candidates.items():
        for action, count in sorted(Counter(entity.action for entity in entities).items()):
            counts[f"{kind}_{action}"] = count
    return counts
