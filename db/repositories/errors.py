"""
Exceptions raised by the upload reconciliation flow.

Every error carries a ``to_dict()`` payload so routers can return structured
details without knowing the concrete subclass.
"""

from __future__ import annotations

from typing import Any


class ReconciliationError(Exception):
    """Base exception for upload discovery/confirmation failures."""

    code = "reconciliation_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": str(self)}
        if self.context:
            payload["context"] = self.context
        return payload


class UploadValidationError(ReconciliationError):
    """Raised when an uploaded file cannot become a session (name, kind, content)."""

    code = "upload_invalid"


class SessionNotFoundError(ReconciliationError):
    """Raised when a referenced upload session does not exist."""

    code = "session_not_found"

    def __init__(self, session_id: object) -> None:
        super().__init__("Upload session not found.", session_id=str(session_id))
        self.session_id = session_id


class SessionNotPendingError(ReconciliationError):
    """Raised when a session has already left the pending_review state."""

    code = "session_not_pending"

    def __init__(self, session_id: object, status: str | None) -> None:
        super().__init__(
            "Upload session is not pending review.",
            session_id=str(session_id),
            status=status,
        )
        self.session_id = session_id
        self.status = status


class ConfirmationError(ReconciliationError):
    """Raised when a confirmation payload cannot be resolved to foreign keys."""

    code = "confirmation_invalid"

    def __init__(self, step: str, message: str, **context: Any) -> None:
        super().__init__(message, step=step, **context)
        self.step = step


class MissingMarketMappingError(ConfirmationError):
    """Raised when a store create action names a market that was not resolved."""

    code = "market_mapping_missing"

    def __init__(self, *, store_name: str, market_name: str | None) -> None:
        super().__init__(
            "stores",
            f"Market mapping not found for store: {store_name}",
            store=store_name,
            market=market_name,
        )
        self.store_name = store_name
        self.market_name = market_name


class ConfirmationPersistenceError(ReconciliationError):
    """Raised when a database error interrupts a confirmation step."""

    code = "confirmation_persistence_failed"

    def __init__(self, step: str, message: str = "Unable to persist confirmed upload.") -> None:
        super().__init__(message, step=step)
        self.step = step
