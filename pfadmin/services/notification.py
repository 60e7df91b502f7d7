"""
Provident Fund Back Office
Notification Service.

Central service for creating and querying in-app notifications, plus the
per-transition message catalogue the lifecycle engine dispatches after a
transition commits.

Dispatcher contract (anything passed to the engine as ``notifier``):

    notify(recipient_id, title, message, severity, metadata) -> Any

NotificationService satisfies it with a committed Notification row. The
engine treats every dispatcher as best-effort.
"""

import json
import logging
from datetime import datetime, timezone

from pfadmin.models import db
from pfadmin.models.notification import NOTIFICATION_SEVERITIES, Notification
from pfadmin.models.request import RequestStatus

logger = logging.getLogger(__name__)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def notify(recipient_id, title, message="", severity="info", metadata=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        if severity not in NOTIFICATION_SEVERITIES:
            severity = "info"
        notif = Notification(
            recipient_id=recipient_id,
            title=title,
            message=message,
            severity=severity,
            data_json=json.dumps(metadata or {}, default=str),
        )
        db.session.add(notif)
        db.session.commit()
        logger.info("Notification created for user %s: %s", recipient_id, title)
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(recipient_id, unread_only=False, limit=50, offset=0):
        """
        Retrieve notifications for a recipient, newest first.
        """
        q = Notification.query.filter_by(recipient_id=recipient_id)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(recipient_id):
        """Return count of unread notifications."""
        return Notification.query.filter_by(recipient_id=recipient_id, is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id):
        """Mark a single notification as read."""
        notif = db.session.get(Notification, notification_id)
        if notif:
            notif.mark_read()
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(recipient_id):
        """Mark all notifications for a recipient as read."""
        q = Notification.query.filter_by(recipient_id=recipient_id, is_read=False)
        now = datetime.now(timezone.utc)
        count = q.update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        db.session.commit()
        return count


# ── Transition message catalogue ──────────────────────────────────────────────


def _label(req) -> str:
    kind = req.request_kind.value if req.request_kind else "request"
    return f"{kind.capitalize()} request #{req.id}"


def transition_messages(req, action: str) -> list[dict]:
    """
    Build the notifications a committed transition should produce.

    Returns:
        List of ``{"recipient_id", "title", "message", "severity", "metadata"}``.
        Empty when the transition has no audience.
    """
    label = _label(req)
    metadata = {
        "request_id": req.id,
        "request_kind": req.request_kind.value if req.request_kind else None,
        "status": RequestStatus(req.status).value,
        "amount": str(req.payout_amount) if req.payout_amount is not None else None,
    }
    owner = req.employee_id
    messages = []

    def add(recipient_id, title, message, severity):
        if recipient_id is not None:
            messages.append({
                "recipient_id": recipient_id,
                "title": title,
                "message": message,
                "severity": severity,
                "metadata": metadata,
            })

    if action == "mark_ready":
        add(owner, f"{label} is ready for review",
            "Your documents were verified and the request is queued for officer review.", "info")
    elif action == "mark_incomplete":
        add(owner, f"{label} needs more information",
            f"HR marked your request incomplete: {req.remarks or 'see remarks'}", "action_required")
    elif action == "resubmit":
        if req.assistant_id is not None:
            add(req.assistant_id, f"{label} was resubmitted",
                "The employee updated the request; please re-screen it.", "info")
    elif action == "move_to_review":
        add(owner, f"{label} is under review", "An HR officer is reviewing your request.", "info")
        add(req.officer_id, f"{label} assigned to you", "You are the reviewing officer.", "info")
    elif action == "assign_approver":
        add(req.approver_id, f"{label} awaits your decision",
            "You are first in the approval chain for this request.", "action_required")
    elif action == "approve_step":
        add(req.approver_id, f"{label} awaits your decision",
            "The previous approver approved; it is now your turn.", "action_required")
    elif action == "approve":
        add(owner, f"{label} approved", "Your request was approved and awaits fund release.", "success")
    elif action == "reject":
        add(owner, f"{label} rejected", req.remarks or "Your request was rejected.", "error")
    elif action == "release":
        add(owner, f"{label} funds released",
            f"Payment reference: {req.payment_reference}.", "success")
    elif action == "cancel":
        add(owner, f"{label} cancelled", req.remarks or "Your request was cancelled.", "warning")
    return messages
