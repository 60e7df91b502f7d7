"""
Provident Fund Back Office
Approval chain model.

Models:
    - RequestApproval: one step of the ordered approver chain assigned to a
      ProvidentRequest under officer review.

Exactly one undecided step per request is ``is_current``; its approver is
mirrored on ``ProvidentRequest.approver_id`` so access checks can be
resolved from the request row alone.
"""

from pfadmin.models import db
from pfadmin.models.request import Decision, _enum_column


class RequestApproval(db.Model):
    """One approver's turn in a request's approval chain."""

    __tablename__ = "request_approvals"
    __table_args__ = (
        db.UniqueConstraint("request_id", "sequence_order", name="uq_request_approvals_sequence"),
        db.UniqueConstraint("request_id", "approver_id", name="uq_request_approvals_approver"),
        db.Index("ix_request_approvals_approver", "approver_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.Integer,
        db.ForeignKey("provident_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
    )
    sequence_order = db.Column(db.Integer, nullable=False, comment="1-based position in the chain")
    is_current = db.Column(db.Boolean, nullable=False, default=False)
    decision = db.Column(_enum_column(Decision, 20), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    comments = db.Column(db.Text, nullable=True)

    approver = db.relationship("User", foreign_keys=[approver_id], lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "approver_id": self.approver_id,
            "approver_name": self.approver.name if self.approver else None,
            "sequence_order": self.sequence_order,
            "is_current": self.is_current,
            "decision": self.decision.value if self.decision else None,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "comments": self.comments,
        }

    def __repr__(self):
        return f"<RequestApproval {self.request_id}#{self.sequence_order}: user/{self.approver_id}>"
