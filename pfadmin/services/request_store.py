"""
Request Store: repository over ``provident_requests`` and its approval chain.

The only module that reads or writes ProvidentRequest rows. Status changes go
through ``compare_and_set``: a single conditional UPDATE keyed on
(id, status, version), so concurrent writers on one row are linearized
without a global lock, and writers on different rows never contend.

Every SQLAlchemy failure is re-raised as PersistenceError; retry policy
belongs to the caller.

Usage:
    from pfadmin.services.request_store import RequestStore

    store = RequestStore()
    req = store.get(42)
    ok = store.compare_and_set(42, req.status, req.version, status=RequestStatus.APPROVED)
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from pfadmin.core.exceptions import NotFoundError, PersistenceError
from pfadmin.models import db
from pfadmin.models.approval import RequestApproval
from pfadmin.models.request import Decision, ProvidentRequest, RequestKind, RequestStatus
from pfadmin.models.user import User

logger = logging.getLogger(__name__)


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _escape_like(term: str) -> str:
    """Make LIKE wildcards in user input match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class RequestStore:
    """Stateless repository; all state lives in ``db.session``."""

    # ── Reads ─────────────────────────────────────────────────────────────

    def get(self, request_id: int) -> ProvidentRequest | None:
        """Load a request, overwriting any stale copy held by the session."""
        try:
            return db.session.get(ProvidentRequest, request_id, populate_existing=True)
        except SQLAlchemyError as exc:
            raise PersistenceError("load request") from exc

    def get_or_raise(self, request_id: int) -> ProvidentRequest:
        req = self.get(request_id)
        if req is None:
            raise NotFoundError("Request", request_id)
        return req

    def get_user(self, user_id: int) -> User:
        try:
            user = db.session.get(User, user_id)
        except SQLAlchemyError as exc:
            raise PersistenceError("load user") from exc
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def list_requests(
        self,
        *,
        status: RequestStatus | None = None,
        search: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        request_kind: RequestKind | None = None,
    ) -> list[ProvidentRequest]:
        """
        Filtered listing, newest first.

        Args:
            status: Exact status match.
            search: Case-insensitive substring of employee name or employee number.
            start_date: created_at on or after this day.
            end_date: created_at on or before this day (whole day included).
            request_kind: withdrawal | loan.
        """
        stmt = select(ProvidentRequest).join(User, ProvidentRequest.employee_id == User.id)
        if status is not None:
            stmt = stmt.where(ProvidentRequest.status == status)
        if request_kind is not None:
            stmt = stmt.where(ProvidentRequest.request_kind == request_kind)
        if search:
            pattern = f"%{_escape_like(search.strip())}%"
            stmt = stmt.where(or_(
                User.name.ilike(pattern, escape="\\"),
                User.employee_no.ilike(pattern, escape="\\"),
            ))
        if start_date is not None:
            stmt = stmt.where(ProvidentRequest.created_at >= _day_start(start_date))
        if end_date is not None:
            stmt = stmt.where(ProvidentRequest.created_at < _day_start(end_date + timedelta(days=1)))
        stmt = stmt.order_by(ProvidentRequest.created_at.desc(), ProvidentRequest.id.desc())
        try:
            return list(db.session.execute(stmt).unique().scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError("list requests") from exc

    def status_summary(self, request_kind: RequestKind | None = None) -> list[dict]:
        """Return ``[{"status": ..., "count": n}]`` ordered by status name."""
        stmt = select(ProvidentRequest.status, func.count(ProvidentRequest.id))
        if request_kind is not None:
            stmt = stmt.where(ProvidentRequest.request_kind == request_kind)
        stmt = stmt.group_by(ProvidentRequest.status)
        try:
            rows = db.session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise PersistenceError("status summary") from exc
        summary = [{"status": RequestStatus(s).value, "count": int(c)} for s, c in rows]
        return sorted(summary, key=lambda r: r["status"])

    # ── Writes ────────────────────────────────────────────────────────────

    def create(
        self,
        *,
        employee_id: int,
        request_kind: RequestKind,
        request_type: str,
        payout_amount: Decimal,
        purpose_detail: str | None = None,
    ) -> ProvidentRequest:
        """Insert a new request in status Submitted. Flushes; caller commits."""
        req = ProvidentRequest(
            employee_id=employee_id,
            request_kind=request_kind,
            request_type=request_type,
            payout_amount=payout_amount,
            purpose_detail=purpose_detail,
            status=RequestStatus.SUBMITTED,
            version=1,
        )
        try:
            db.session.add(req)
            db.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError("create request") from exc
        return req

    def compare_and_set(
        self,
        request_id: int,
        expected_status: RequestStatus,
        expected_version: int,
        **values,
    ) -> bool:
        """
        Conditionally write ``values`` and bump ``version``.

        The UPDATE only matches when status and version are still the ones
        the caller read. Does not commit.

        Returns:
            True if exactly one row was updated, False if the row moved on.
        """
        stmt = (
            update(ProvidentRequest)
            .where(
                ProvidentRequest.id == request_id,
                ProvidentRequest.status == expected_status,
                ProvidentRequest.version == expected_version,
            )
            .values(
                version=ProvidentRequest.version + 1,
                updated_at=datetime.now(timezone.utc),
                **values,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = db.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError("conditional status write") from exc
        updated = result.rowcount == 1
        if not updated:
            logger.debug(
                "compare_and_set missed request=%s expected=%s/v%s",
                request_id, expected_status, expected_version,
            )
        return updated

    # ── Approval chain ────────────────────────────────────────────────────

    def approval_chain(self, request_id: int) -> list[RequestApproval]:
        """Chain steps in sequence order, freshly read."""
        stmt = (
            select(RequestApproval)
            .where(RequestApproval.request_id == request_id)
            .order_by(RequestApproval.sequence_order)
            .execution_options(populate_existing=True)
        )
        try:
            return list(db.session.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            raise PersistenceError("load approval chain") from exc

    def replace_approval_chain(self, request_id: int, approver_ids: list[int]) -> list[RequestApproval]:
        """Drop the request's chain and insert ``approver_ids`` in order, first one current. Flushes."""
        steps = [
            RequestApproval(
                request_id=request_id,
                approver_id=approver_id,
                sequence_order=position,
                is_current=position == 1,
            )
            for position, approver_id in enumerate(approver_ids, start=1)
        ]
        try:
            db.session.execute(delete(RequestApproval).where(RequestApproval.request_id == request_id))
            db.session.add_all(steps)
            db.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError("replace approval chain") from exc
        return steps

    def close_approval_step(
        self,
        step: RequestApproval,
        decision: Decision,
        comments: str | None,
        following: RequestApproval | None = None,
    ) -> None:
        """Record the current step's decision and hand the turn to ``following``. Flushes."""
        step.decision = decision
        step.decided_at = datetime.now(timezone.utc)
        step.comments = comments
        step.is_current = False
        if following is not None:
            following.is_current = True
        try:
            db.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError("record approval step") from exc
