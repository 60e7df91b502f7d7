"""
Request Lifecycle Service

Manages withdrawal / loan request status transitions with:
  - Transition validation (REQUEST_TRANSITIONS)
  - Access checks re-resolved against the freshly read row
  - Optimistic compare-and-set on (status, version), one retry on a
    version-only miss, ConflictError otherwise
  - Append-only history written in the same transaction as the status write
  - Best-effort notifications after commit

Operations:
  submit_request, mark_ready, mark_incomplete, resubmit, move_to_review,
  assign_approvers, decide, release, cancel

Check order for every mutating operation:
  request exists -> operation defined for current status -> actor holds the
  capability -> required inputs present -> conditional write

Usage:
    from pfadmin.services.request_lifecycle import LifecycleEngine

    engine = LifecycleEngine()
    req = engine.decide(actor_id=7, request_id=42, decision="Approved")
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import SQLAlchemyError

from pfadmin.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    PersistenceError,
    UnauthorizedError,
    ValidationError,
)
from pfadmin.models import db
from pfadmin.models.approval import RequestApproval
from pfadmin.models.history import HISTORY_ACTIONS, RequestHistory
from pfadmin.models.request import (
    PAYMENT_REFERENCE_MAX_LENGTH,
    REQUEST_TRANSITIONS,
    WITHDRAWAL_TYPES,
    Decision,
    ProvidentRequest,
    RequestKind,
    RequestStatus,
)
from pfadmin.models.user import Role
from pfadmin.services import history_recorder
from pfadmin.services.access_resolver import (
    ACTION_CAPABILITY,
    APPROVER_ROLES,
    BLANKET_ROLES,
    AccessGrant,
    resolve_access,
)
from pfadmin.services.notification import transition_messages
from pfadmin.services.request_store import RequestStore

logger = logging.getLogger(__name__)

# Attempts at the conditional write per call (first try + one retry).
MAX_WRITE_ATTEMPTS = 2

# Loans go through at least this many approvers; withdrawals need one.
MIN_LOAN_APPROVERS = 2


def _require_text(value: str | None, field: str, message: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(message, details={field: "required"})
    return text


class LifecycleEngine:
    """
    Applies lifecycle operations on behalf of an explicit actor.

    Args:
        store: Request repository; defaults to the SQL-backed RequestStore.
        notifier: Dispatcher with ``notify(recipient_id, title, message,
                  severity, metadata)``. None disables notifications.
    """

    def __init__(self, store: RequestStore | None = None, notifier=None):
        self.store = store or RequestStore()
        self.notifier = notifier

    # ── Reads ─────────────────────────────────────────────────────────────

    def get_by_id(self, request_id: int) -> ProvidentRequest:
        return self.store.get_or_raise(request_id)

    def get_history(self, request_id: int) -> list[RequestHistory]:
        self.store.get_or_raise(request_id)
        return history_recorder.get_history(request_id)

    def get_approvals(self, request_id: int) -> list[RequestApproval]:
        """Return the approval chain in sequence order; empty before assignment."""
        self.store.get_or_raise(request_id)
        return self.store.approval_chain(request_id)

    def get_access(self, actor_id: int, request_id: int) -> AccessGrant:
        actor = self.store.get_user(actor_id)
        req = self.store.get_or_raise(request_id)
        return resolve_access(actor, req)

    def list_requests(
        self,
        *,
        status: str | None = None,
        search: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        request_kind: str | None = None,
    ) -> list[ProvidentRequest]:
        try:
            status_filter = RequestStatus(status) if status else None
            kind_filter = RequestKind(request_kind) if request_kind else None
        except ValueError as exc:
            raise ValidationError(str(exc), details={"filter": "invalid value"}) from exc
        if start_date and end_date and start_date > end_date:
            raise ValidationError(
                "start_date must not be after end_date",
                details={"start_date": "after end_date"},
            )
        return self.store.list_requests(
            status=status_filter,
            search=search,
            start_date=start_date,
            end_date=end_date,
            request_kind=kind_filter,
        )

    def status_summary(self, request_kind: str | None = None) -> list[dict]:
        try:
            kind_filter = RequestKind(request_kind) if request_kind else None
        except ValueError as exc:
            raise ValidationError(str(exc), details={"request_kind": "invalid value"}) from exc
        return self.store.status_summary(kind_filter)

    # ── Filing ────────────────────────────────────────────────────────────

    def submit_request(
        self,
        actor_id: int,
        *,
        request_kind: str,
        request_type: str,
        payout_amount,
        purpose_detail: str | None = None,
    ) -> ProvidentRequest:
        """File a new request for the actor; it starts in Submitted."""
        actor = self.store.get_user(actor_id)
        if not actor.is_active:
            raise UnauthorizedError(actor.role.value, "can_submit", "-")

        try:
            kind = RequestKind(request_kind)
        except ValueError as exc:
            raise ValidationError(
                f"Invalid request_kind '{request_kind}'",
                details={"request_kind": sorted(k.value for k in RequestKind)},
            ) from exc
        rtype = _require_text(request_type, "request_type", "request_type is required")
        if kind == RequestKind.WITHDRAWAL and rtype not in WITHDRAWAL_TYPES:
            raise ValidationError(
                f"Invalid withdrawal type '{rtype}'",
                details={"request_type": sorted(WITHDRAWAL_TYPES)},
            )
        try:
            amount = Decimal(str(payout_amount))
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ValidationError("payout_amount must be a number", details={"payout_amount": "invalid"}) from exc
        if not amount.is_finite() or amount <= 0:
            raise ValidationError("payout_amount must be positive", details={"payout_amount": "must be > 0"})

        try:
            req = self.store.create(
                employee_id=actor.id,
                request_kind=kind,
                request_type=rtype,
                payout_amount=amount,
                purpose_detail=(purpose_detail or "").strip() or None,
            )
            history_recorder.record(
                req.id, HISTORY_ACTIONS["submit"], actor,
                from_status=None, to_status=RequestStatus.SUBMITTED.value,
            )
            db.session.commit()
        except PersistenceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError("submit request") from exc

        logger.info(
            "Request submitted",
            extra={"entity_id": req.id, "actor_id": actor.id, "action": "submit"},
        )
        return req

    # ── Transitions ───────────────────────────────────────────────────────

    def mark_ready(self, actor_id: int, request_id: int) -> ProvidentRequest:
        return self._apply(
            actor_id, request_id, "mark_ready",
            changes=lambda req, actor: {
                "assistant_id": req.assistant_id or actor.id,
                "remarks": None,
            },
        )

    def mark_incomplete(self, actor_id: int, request_id: int, remarks: str | None) -> ProvidentRequest:
        def validate(req, actor):
            return _require_text(remarks, "remarks", "remarks are required to mark a request incomplete")

        return self._apply(
            actor_id, request_id, "mark_incomplete",
            validate=validate,
            changes=lambda req, actor: {
                "assistant_id": req.assistant_id or actor.id,
                "remarks": remarks.strip(),
            },
            remarks=remarks,
        )

    def resubmit(self, actor_id: int, request_id: int) -> ProvidentRequest:
        # Assistant assignment is retained so the same assistant re-screens.
        return self._apply(
            actor_id, request_id, "resubmit",
            changes=lambda req, actor: {"remarks": None},
        )

    def move_to_review(self, actor_id: int, request_id: int) -> ProvidentRequest:
        return self._apply(
            actor_id, request_id, "move_to_review",
            changes=lambda req, actor: {"officer_id": actor.id},
        )

    def assign_approvers(self, actor_id: int, request_id: int, approver_ids: list[int] | None) -> ProvidentRequest:
        """
        Assign the ordered approver chain of a request under officer review.

        The first approver becomes current. Reassigning replaces the chain
        only while no approver has decided yet.
        """
        approver_ids = list(approver_ids or [])

        def validate(req, actor):
            if not approver_ids:
                raise ValidationError("approver_ids is required", details={"approver_ids": "required"})
            if len(set(approver_ids)) != len(approver_ids):
                raise ValidationError("Duplicate approvers are not allowed", details={"approver_ids": "duplicate"})
            if req.request_kind == RequestKind.LOAN and len(approver_ids) < MIN_LOAN_APPROVERS:
                raise ValidationError(
                    f"At least {MIN_LOAN_APPROVERS} approvers are required for a loan",
                    details={"approver_ids": f"min {MIN_LOAN_APPROVERS}"},
                )
            excluded = {req.officer_id, actor.id, req.employee_id}
            for approver_id in approver_ids:
                approver = self.store.get_user(approver_id)
                role = Role(approver.role)
                if not approver.is_active or (role not in APPROVER_ROLES and role not in BLANKET_ROLES):
                    raise ValidationError(
                        "Assigned approver must be an active user with approver privilege",
                        details={"approver_ids": {str(approver_id): "lacks approver privilege"}},
                    )
                if approver.id in excluded:
                    raise ValidationError(
                        "The reviewing officer or the requesting employee cannot be an approver",
                        details={"approver_ids": {str(approver_id): "not allowed"}},
                    )
            if any(step.decision is not None for step in self.store.approval_chain(req.id)):
                raise ValidationError(
                    "The approval chain is already in progress",
                    details={"approver_ids": "chain in progress"},
                )

        return self._apply(
            actor_id, request_id, "assign_approver",
            validate=validate,
            changes=lambda req, actor: {"approver_id": approver_ids[0]},
            after_write=lambda req, actor: self.store.replace_approval_chain(req.id, approver_ids),
            remarks=lambda req, actor: "Approval order: " + ", ".join(
                self.store.get_user(i).name for i in approver_ids
            ),
        )

    def decide(
        self,
        actor_id: int,
        request_id: int,
        decision: str,
        comments: str | None = None,
    ) -> ProvidentRequest:
        """
        Record the current approver's decision on a request under officer review.

        An approval hands the request to the next approver in its chain and
        only the last approval moves it to Approved. Any rejection ends it.
        """
        try:
            outcome = Decision(decision)
        except ValueError:
            outcome = None
        action = "reject" if outcome == Decision.REJECTED else "approve"
        comments = (comments or "").strip() or None
        steps = {}

        def validate(req, actor):
            if outcome is None:
                raise ValidationError(
                    f"Invalid decision '{decision}'",
                    details={"decision": [d.value for d in Decision]},
                )
            chain = self.store.approval_chain(req.id)
            current = next((s for s in chain if s.is_current), None)
            following = None
            if current is not None and outcome == Decision.APPROVED:
                following = next((s for s in chain if s.sequence_order > current.sequence_order), None)
            steps.update(current=current, following=following)

        def route(req, actor):
            return "approve_step" if steps["following"] is not None else action

        def changes(req, actor):
            following = steps["following"]
            values = {
                "approver_id": following.approver_id if following else (req.approver_id or actor.id),
                "reviewed_at": datetime.now(timezone.utc),
            }
            if comments:
                values["remarks"] = comments
            return values

        def after_write(req, actor):
            if steps["current"] is not None:
                self.store.close_approval_step(steps["current"], outcome, comments, steps["following"])

        return self._apply(
            actor_id, request_id, action,
            validate=validate,
            route=route,
            changes=changes,
            after_write=after_write,
            remarks=comments,
        )

    def release(self, actor_id: int, request_id: int, payment_reference: str | None) -> ProvidentRequest:
        def validate(req, actor):
            reference = _require_text(
                payment_reference, "payment_reference", "payment_reference is required to release funds",
            )
            if len(reference) > PAYMENT_REFERENCE_MAX_LENGTH:
                raise ValidationError(
                    f"payment_reference must be at most {PAYMENT_REFERENCE_MAX_LENGTH} characters",
                    details={"payment_reference": f"max {PAYMENT_REFERENCE_MAX_LENGTH}"},
                )

        return self._apply(
            actor_id, request_id, "release",
            validate=validate,
            changes=lambda req, actor: {
                "payment_reference": payment_reference.strip(),
                "released_by": actor.id,
                "processed_at": datetime.now(timezone.utc),
            },
            remarks=payment_reference,
        )

    def cancel(self, actor_id: int, request_id: int, remarks: str | None = None) -> ProvidentRequest:
        """Cancel a non-final request; HR cancelling for an employee must give remarks."""
        def validate(req, actor):
            if req.employee_id != actor.id:
                _require_text(remarks, "remarks", "remarks are required when HR cancels on behalf of an employee")

        def label(req, actor):
            key = "cancel_by_employee" if req.employee_id == actor.id else "cancel_by_hr"
            return HISTORY_ACTIONS[key]

        return self._apply(
            actor_id, request_id, "cancel",
            validate=validate,
            changes=lambda req, actor: {"remarks": (remarks or "").strip() or None},
            remarks=remarks,
            label=label,
        )

    # ── Core ──────────────────────────────────────────────────────────────

    def _apply(
        self, actor_id, request_id, action, *,
        changes, validate=None, route=None, after_write=None, remarks=None, label=None,
    ):
        """
        Run one transition through check -> conditional write -> history -> commit.

        Args:
            action: Operation name; selects the transition rule and capability.
            changes: ``(req, actor) -> dict`` of column values to write.
            validate: Input checks run after the access check.
            route: ``(req, actor) -> action`` picking a sibling rule with the
                same source states and capability, e.g. ``approve_step``.
            after_write: Same-transaction writes once the conditional write matched.
            remarks: History remarks, or ``(req, actor) -> str``.
            label: ``(req, actor) -> str`` overriding the history label.

        Raises:
            NotFoundError, InvalidTransitionError, UnauthorizedError,
            ValidationError, ConflictError, PersistenceError
        """
        rule = REQUEST_TRANSITIONS[action]
        actor = self.store.get_user(actor_id)
        first_seen: RequestStatus | None = None

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            req = self.store.get_or_raise(request_id)
            current = RequestStatus(req.status)

            if current not in rule["from"]:
                if first_seen is not None:
                    # The row moved on between our read and our write.
                    raise ConflictError(request_id, first_seen.value, current.value)
                raise InvalidTransitionError(action, current.value, request_id)
            if first_seen is None:
                first_seen = current

            grant = resolve_access(actor, req)
            if not grant.allows(action):
                raise UnauthorizedError(
                    actor.role.value if actor.role else None,
                    ACTION_CAPABILITY[action],
                    current.value,
                )
            if validate is not None:
                validate(req, actor)

            applied = route(req, actor) if route else action
            target = REQUEST_TRANSITIONS[applied]["to"]
            values = changes(req, actor)
            history_label = label(req, actor) if label else HISTORY_ACTIONS[applied]
            note = remarks(req, actor) if callable(remarks) else remarks
            expected_version = req.version

            try:
                matched = self.store.compare_and_set(
                    request_id, current, expected_version, status=target, **values,
                )
                if matched:
                    if after_write is not None:
                        after_write(req, actor)
                    history_recorder.record(
                        request_id, history_label, actor, note,
                        from_status=current.value, to_status=target.value,
                    )
                    db.session.commit()
            except PersistenceError:
                db.session.rollback()
                raise
            except SQLAlchemyError as exc:
                db.session.rollback()
                raise PersistenceError(action) from exc

            if matched:
                break

            db.session.rollback()
            logger.warning(
                "Conditional write missed; re-reading",
                extra={"entity_id": request_id, "action": action, "attempt": attempt},
            )
        else:
            fresh = self.store.get_or_raise(request_id)
            raise ConflictError(request_id, first_seen.value, RequestStatus(fresh.status).value)

        updated = self.store.get_or_raise(request_id)
        logger.info(
            "Request transition %s: %s -> %s",
            applied, current.value, target.value,
            extra={
                "entity_id": request_id,
                "actor_id": actor.id,
                "action": applied,
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        self._dispatch(updated, applied)
        return updated

    def _dispatch(self, req: ProvidentRequest, action: str) -> None:
        """Send post-commit notifications; failures are logged, never raised."""
        if self.notifier is None:
            return
        for msg in transition_messages(req, action):
            try:
                self.notifier.notify(
                    msg["recipient_id"], msg["title"], msg["message"], msg["severity"], msg["metadata"],
                )
            except Exception:
                logger.exception(
                    "Notification dispatch failed",
                    extra={"entity_id": req.id, "action": action},
                )
                db.session.rollback()
