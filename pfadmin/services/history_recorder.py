"""
Request History Recorder.

Append-only audit trail for request transitions.

Design decisions:
    - RequestHistory is APPEND-ONLY: this module exposes ``record`` and
      ``get_history`` and nothing else.
    - ``record`` is called by the lifecycle engine after its conditional
      status write has matched, inside the same transaction. A write that
      lost its race therefore never leaves an orphan entry.
    - ``record`` only flushes; the engine owns the commit.
    - Timestamps are server-assigned and clamped so they never go backwards
      within one request, even if the wall clock does.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from pfadmin.core.exceptions import PersistenceError
from pfadmin.models import db
from pfadmin.models.history import RequestHistory

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _next_timestamp(request_id: int) -> datetime:
    now = datetime.now(timezone.utc)
    last = db.session.execute(
        select(func.max(RequestHistory.created_at)).where(RequestHistory.request_id == request_id)
    ).scalar_one_or_none()
    last = _as_utc(last)
    if last is not None and last > now:
        return last
    return now


def record(
    request_id: int,
    action: str,
    actor,
    remarks: str | None = None,
    *,
    from_status: str | None = None,
    to_status: str,
) -> RequestHistory:
    """
    Append one history entry.

    Args:
        request_id: The request the transition was applied to.
        action: Human-readable label (see HISTORY_ACTIONS).
        actor: User who performed the transition; its role is snapshotted.
        remarks: Optional free text (reason, comments, payment reference).
        from_status / to_status: Status values around the transition.

    Returns:
        The flushed RequestHistory instance.
    """
    try:
        entry = RequestHistory(
            request_id=request_id,
            action=action,
            actor_id=actor.id if actor is not None else None,
            actor_role=actor.role.value if actor is not None and actor.role else None,
            from_status=from_status,
            to_status=to_status,
            remarks=(remarks or "").strip() or None,
            created_at=_next_timestamp(request_id),
        )
        db.session.add(entry)
        db.session.flush()
    except SQLAlchemyError as exc:
        raise PersistenceError("record history") from exc
    logger.debug("History recorded request=%s action=%r", request_id, action)
    return entry


def get_history(request_id: int) -> list[RequestHistory]:
    """Return every entry for a request, oldest first."""
    try:
        return list(
            db.session.execute(
                select(RequestHistory)
                .where(RequestHistory.request_id == request_id)
                .order_by(RequestHistory.created_at.asc(), RequestHistory.id.asc())
            ).unique().scalars().all()
        )
    except SQLAlchemyError as exc:
        raise PersistenceError("load history") from exc
