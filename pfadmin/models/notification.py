"""
Provident Fund Back Office
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking
"""

import json
from datetime import datetime, timezone

from pfadmin.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_SEVERITIES = {"info", "success", "warning", "error", "action_required"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    severity = db.Column(db.String(20), default="info")
    data_json = db.Column(db.Text, default="{}", comment="JSON: {request_id, status, amount, ...}")

    # Read tracking
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def data(self) -> dict:
        try:
            return json.loads(self.data_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def mark_read(self):
        self.is_read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "data": self.data,
            "is_read": self.is_read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
