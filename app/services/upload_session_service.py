"""
app/services/upload_session_service.py

Read and cancel operations on upload sessions.
"""

from __future__ import annotations

import logging
import uuid
from functools import lru_cache

from sqlalchemy.orm import Session, sessionmaker

from app.domain.reconciliation import SessionSnapshot
from app.logging_utils import log_session_event
from db.repositories.errors import SessionNotFoundError
from db.repositories.upload_session_repository import UploadSessionRepository

logger = logging.getLogger(__name__)


class UploadSessionService:
    def __init__(self, *, session_factory: sessionmaker[Session] | None = None) -> None:
        if session_factory is None:
            from db.session import get_session_factory

            self._session_factory = get_session_factory()
        else:
            self._session_factory = session_factory

    def get(self, session_id: uuid.UUID) -> SessionSnapshot:
        with self._session_factory() as db:
            upload_session = UploadSessionRepository(db).get_session(session_id)
            if upload_session is None:
                raise SessionNotFoundError(session_id)
            return SessionSnapshot.from_model(upload_session)

    def list_sessions(
        self,
        *,
        status: str | None = None,
        file_type: str | None = None,
        limit: int = 50,
    ) -> list[SessionSnapshot]:
        """
        Most recent sessions first.
        """

        with self._session_factory() as db:
            rows = UploadSessionRepository(db).list_sessions(
                limit=limit,
                status=status,
                file_type=file_type,
            )
            return [SessionSnapshot.from_model(row) for row in rows]

    def cancel(self, session_id: uuid.UUID) -> int:
        """
        Cancel a pending session. Returns 0 when the session is missing or no
        longer pending; nothing is changed in that case.
        """

        with self._session_factory() as db:
            with db.begin():
                affected = UploadSessionRepository(db).cancel_session(session_id=session_id)

        if affected:
            log_session_event(logger, logging.INFO, "session_cancelled", session_id)
        return affected


@lru_cache(maxsize=1)
def get_upload_session_service() -> UploadSessionService:
    return UploadSessionService()
