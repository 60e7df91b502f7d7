"""
Provident Fund Back Office
Withdrawal / loan request domain model.

Models:
    - ProvidentRequest: one employee withdrawal or loan application and its
      workflow state.

Constants:
    - RequestStatus: closed set of lifecycle states
    - REQUEST_TRANSITIONS: operation -> {"from": (...), "to": ...}
"""

from datetime import datetime, timezone
from enum import Enum

from pfadmin.models import db


class RequestStatus(str, Enum):
    SUBMITTED = "Submitted"
    INCOMPLETE = "Incomplete"
    READY_FOR_REVIEW = "ReadyForReview"
    OFFICER_REVIEW = "OfficerReview"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    RELEASED = "Released"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


class RequestKind(str, Enum):
    WITHDRAWAL = "withdrawal"
    LOAN = "loan"


class Decision(str, Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"


TERMINAL_STATUSES = frozenset({
    RequestStatus.RELEASED,
    RequestStatus.REJECTED,
    RequestStatus.CANCELLED,
})

CANCELLABLE_STATUSES = (
    RequestStatus.SUBMITTED,
    RequestStatus.INCOMPLETE,
    RequestStatus.READY_FOR_REVIEW,
    RequestStatus.OFFICER_REVIEW,
)

PAYMENT_REFERENCE_MAX_LENGTH = 100

WITHDRAWAL_TYPES = {"Retirement", "Resignation", "Redundancy", "Disability", "Death", "Other"}

# One target per (source, operation). "decide" is split per outcome so the
# table stays a total function of (status, operation); an approval that hands
# the request to the next approver in its chain is "approve_step".
REQUEST_TRANSITIONS = {
    "mark_ready": {"from": (RequestStatus.SUBMITTED,), "to": RequestStatus.READY_FOR_REVIEW},
    "mark_incomplete": {"from": (RequestStatus.SUBMITTED,), "to": RequestStatus.INCOMPLETE},
    "resubmit": {"from": (RequestStatus.INCOMPLETE,), "to": RequestStatus.SUBMITTED},
    "move_to_review": {"from": (RequestStatus.READY_FOR_REVIEW,), "to": RequestStatus.OFFICER_REVIEW},
    "assign_approver": {"from": (RequestStatus.OFFICER_REVIEW,), "to": RequestStatus.OFFICER_REVIEW},
    "approve_step": {"from": (RequestStatus.OFFICER_REVIEW,), "to": RequestStatus.OFFICER_REVIEW},
    "approve": {"from": (RequestStatus.OFFICER_REVIEW,), "to": RequestStatus.APPROVED},
    "reject": {"from": (RequestStatus.OFFICER_REVIEW,), "to": RequestStatus.REJECTED},
    "release": {"from": (RequestStatus.APPROVED,), "to": RequestStatus.RELEASED},
    "cancel": {"from": CANCELLABLE_STATUSES, "to": RequestStatus.CANCELLED},
}


def _enum_column(enum_cls, length):
    return db.Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda e: [m.value for m in e],
    )


class ProvidentRequest(db.Model):
    """
    Employee withdrawal or loan request.

    Status only moves through the lifecycle engine; every move bumps
    ``version``, which the engine uses as its compare-and-set token.
    """

    __tablename__ = "provident_requests"
    __table_args__ = (
        db.Index("ix_provident_requests_status", "status"),
        db.Index("ix_provident_requests_employee", "employee_id"),
        db.Index("ix_provident_requests_created", "created_at"),
        db.CheckConstraint("payout_amount > 0", name="ck_provident_requests_amount_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
    )

    # Classification
    request_kind = db.Column(_enum_column(RequestKind, 20), nullable=False, default=RequestKind.WITHDRAWAL)
    request_type = db.Column(db.String(50), nullable=False, comment="Retirement | Resignation | ... | loan type")
    payout_amount = db.Column(db.Numeric(14, 2), nullable=False)
    purpose_detail = db.Column(db.Text, nullable=True)

    # Workflow
    status = db.Column(_enum_column(RequestStatus, 20), nullable=False, default=RequestStatus.SUBMITTED)
    assistant_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    officer_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approver_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    released_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    payment_reference = db.Column(db.String(PAYMENT_REFERENCE_MAX_LENGTH), nullable=True)
    remarks = db.Column(db.Text, nullable=True, comment="Latest reviewer/employee remarks")
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc),
    )
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee = db.relationship("User", foreign_keys=[employee_id], lazy="joined")

    @property
    def is_terminal(self) -> bool:
        return RequestStatus(self.status).is_terminal

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "employee_name": self.employee.name if self.employee else None,
            "employee_no": self.employee.employee_no if self.employee else None,
            "request_kind": self.request_kind.value if self.request_kind else None,
            "request_type": self.request_type,
            "payout_amount": str(self.payout_amount) if self.payout_amount is not None else None,
            "purpose_detail": self.purpose_detail,
            "status": self.status.value if self.status else None,
            "assistant_id": self.assistant_id,
            "officer_id": self.officer_id,
            "approver_id": self.approver_id,
            "released_by": self.released_by,
            "payment_reference": self.payment_reference,
            "remarks": self.remarks,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ProvidentRequest {self.id}: {self.request_kind} {self.status}>"
