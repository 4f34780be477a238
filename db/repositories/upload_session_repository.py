"""
Repository for upload session persistence and status transitions.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session

from db.models.upload_session import UploadSession, UploadSessionStatus


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class UploadSessionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_session(
        self,
        *,
        filename: str,
        file_type: str,
        report_date: date,
        uploaded_by: int | None,
        market_id: int | None,
        discovered_markets: list[dict[str, Any]],
        discovered_stores: list[dict[str, Any]],
        discovered_advisors: list[dict[str, Any]],
        raw_data: dict[str, Any],
    ) -> UploadSession:
        upload_session = UploadSession(
            filename=filename,
            file_type=file_type,
            report_date=report_date,
            uploaded_by=uploaded_by,
            market_id=market_id,
            discovered_markets=discovered_markets,
            discovered_stores=discovered_stores,
            discovered_advisors=discovered_advisors,
            raw_data=raw_data,
            status=UploadSessionStatus.PENDING_REVIEW,
        )
        self._session.add(upload_session)
        self._session.flush()
        self._session.refresh(upload_session)
        return upload_session

    def get_session(self, session_id: uuid.UUID) -> UploadSession | None:
        return self._session.get(UploadSession, session_id)

    def list_sessions(
        self,
        *,
        limit: int = 50,
        status: str | None = None,
        file_type: str | None = None,
    ) -> list[UploadSession]:
        stmt: Select[tuple[UploadSession]] = select(UploadSession)

        if status:
            stmt = stmt.where(UploadSession.status == status)
        if file_type:
            stmt = stmt.where(UploadSession.file_type == file_type)

        stmt = stmt.order_by(UploadSession.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def mark_processed(self, *, session_id: uuid.UUID) -> int:
        """
        Move a pending session to processed. Returns the affected row count;
        0 means another caller already moved it out of pending_review.
        """

        now = _now_utc()
        return self._transition_pending(
            session_id,
            status=UploadSessionStatus.PROCESSED,
            confirmed_at=now,
            processed_at=now,
            updated_at=now,
        )

    def cancel_session(self, *, session_id: uuid.UUID) -> int:
        """
        Cancel a pending session. Terminal sessions are left untouched (0 rows).
        """

        return self._transition_pending(
            session_id,
            status=UploadSessionStatus.CANCELLED,
            updated_at=_now_utc(),
        )

    def _transition_pending(self, session_id: uuid.UUID, **values: Any) -> int:
        stmt = (
            update(UploadSession)
            .where(
                UploadSession.id == session_id,
                UploadSession.status == UploadSessionStatus.PENDING_REVIEW,
            )
            .values(**values)
        )
        result = self._session.execute(stmt)
        return result.rowcount or 0
