"""
Provident Fund Back Office
Request history model.

Models:
    - RequestHistory: immutable, append-only audit trail of lifecycle
      transitions applied to a ProvidentRequest.
"""

from datetime import datetime, timezone

from pfadmin.models import db

# ── Constants ────────────────────────────────────────────────────────────────

HISTORY_ACTIONS = {
    "submit": "Request submitted",
    "mark_ready": "Marked ready for review",
    "mark_incomplete": "Marked incomplete by HR assistant",
    "resubmit": "Resubmitted by employee",
    "move_to_review": "Moved to HR review",
    "assign_approver": "Approval chain assigned",
    "approve_step": "Approved and forwarded to next approver",
    "approve": "Approved by HR Officer",
    "reject": "Rejected by HR Officer",
    "release": "Funds released",
    "cancel_by_employee": "Request cancelled by employee",
    "cancel_by_hr": "Request cancelled by HR",
}


class RequestHistory(db.Model):
    """
    One row per successful transition.

    Rows are never updated or deleted. Order within a request is
    ``(created_at, id)``; the recorder keeps ``created_at`` non-decreasing.
    """

    __tablename__ = "request_history"
    __table_args__ = (
        db.Index("ix_request_history_request_ts", "request_id", "created_at"),
        db.Index("ix_request_history_actor", "actor_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.Integer,
        db.ForeignKey("provident_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    action = db.Column(db.String(80), nullable=False, comment="Human-readable action label")
    actor_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="SET NULL if user is deleted; actor_role keeps the audit readable",
    )
    actor_role = db.Column(db.String(20), nullable=True, comment="Role snapshot at transition time")
    from_status = db.Column(db.String(20), nullable=True)
    to_status = db.Column(db.String(20), nullable=False)
    remarks = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    actor = db.relationship("User", foreign_keys=[actor_id], lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "action": self.action,
            "actor_id": self.actor_id,
            "actor_name": self.actor.name if self.actor else None,
            "actor_role": self.actor_role,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "remarks": self.remarks,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<RequestHistory {self.id}: {self.action} on request/{self.request_id}>"
