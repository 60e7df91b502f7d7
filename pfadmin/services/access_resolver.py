"""
Request Access Resolver

Computes what a given actor may do to a given request *right now*.

Evaluation is deterministic and deny-by-default:
  - each capability is role-membership AND assignment-match AND state-match
  - blanket roles (GeneralHR, Admin) satisfy every role and assignment check
    but remain state-gated
  - staff capabilities never apply to the actor's own request; the owner
    keeps only cancel and resubmit
  - the approver assignment is the current step of the approval chain
  - inactive users get an all-false grant

The resolver reads nothing but its arguments: no clock, no DB, no cache.
The lifecycle engine calls it against the freshly read row immediately
before each conditional write.

Usage:
    from pfadmin.services.access_resolver import resolve_access

    grant = resolve_access(actor, request)
    if grant.can_approve:
        ...
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from pfadmin.models.request import CANCELLABLE_STATUSES, RequestStatus
from pfadmin.models.user import Role

BLANKET_ROLES = frozenset({Role.GENERAL_HR, Role.ADMIN})

ASSISTANT_ROLES = frozenset({Role.HR_ASSISTANT})
OFFICER_ROLES = frozenset({Role.HR_OFFICER, Role.HR_APPROVER})
APPROVER_ROLES = frozenset({Role.HR_OFFICER, Role.HR_APPROVER})
RELEASE_ROLES = frozenset({Role.HR_OFFICER, Role.TREASURY})
HR_ROLES = frozenset({Role.HR_ASSISTANT, Role.HR_OFFICER, Role.HR_APPROVER, Role.TREASURY})

# Operation -> capability that gates it
ACTION_CAPABILITY = {
    "mark_ready": "can_mark_ready",
    "mark_incomplete": "can_mark_incomplete",
    "move_to_review": "can_move_to_review",
    "assign_approver": "can_assign_approver",
    "approve": "can_approve",
    "approve_step": "can_approve",
    "reject": "can_approve",
    "release": "can_release",
    "cancel": "can_cancel",
    "resubmit": "can_resubmit",
}


@dataclass(frozen=True)
class AccessGrant:
    """Capability set for one (actor, request) pair. Never persisted."""
    can_mark_ready: bool = False
    can_mark_incomplete: bool = False
    can_move_to_review: bool = False
    can_assign_approver: bool = False
    can_approve: bool = False
    can_release: bool = False
    can_cancel: bool = False
    can_resubmit: bool = False

    def allows(self, action: str) -> bool:
        capability = ACTION_CAPABILITY.get(action)
        return bool(capability) and getattr(self, capability)

    def to_dict(self) -> dict:
        return asdict(self)


NO_ACCESS = AccessGrant()


def _has_privilege(role: Role | None, roles: frozenset) -> bool:
    return role in BLANKET_ROLES or role in roles


def _assignment_open(role: Role | None, assigned_id: int | None, actor_id: int) -> bool:
    """Unassigned, assigned to the actor, or bypassed by a blanket role."""
    return role in BLANKET_ROLES or assigned_id is None or assigned_id == actor_id


def resolve_access(actor, request) -> AccessGrant:
    """
    Compute the actor's capability set on a request.

    Args:
        actor: Object with ``id``, ``role`` (Role) and ``is_active``.
        request: Object with ``status``, ``employee_id`` and the
                 ``assistant_id`` / ``officer_id`` / ``approver_id`` assignments.

    Returns:
        AccessGrant; every flag False for a missing or inactive actor.
    """
    if actor is None or not getattr(actor, "is_active", True):
        return NO_ACCESS

    role = Role(actor.role) if actor.role is not None else None
    status = RequestStatus(request.status)
    actor_id = actor.id
    is_owner = request.employee_id == actor_id
    # Staff capabilities exclude the requester's own request.
    acts_as_staff = not is_owner

    can_prescreen = (
        status == RequestStatus.SUBMITTED
        and acts_as_staff
        and _has_privilege(role, ASSISTANT_ROLES)
        and _assignment_open(role, request.assistant_id, actor_id)
    )
    can_move_to_review = (
        status == RequestStatus.READY_FOR_REVIEW
        and acts_as_staff
        and _has_privilege(role, OFFICER_ROLES)
    )
    can_assign_approver = (
        status == RequestStatus.OFFICER_REVIEW
        and acts_as_staff
        and _has_privilege(role, OFFICER_ROLES)
        and _assignment_open(role, request.officer_id, actor_id)
    )
    can_approve = (
        status == RequestStatus.OFFICER_REVIEW
        and acts_as_staff
        and _has_privilege(role, APPROVER_ROLES)
        and _assignment_open(role, request.approver_id, actor_id)
    )
    can_release = (
        status == RequestStatus.APPROVED
        and acts_as_staff
        and _has_privilege(role, RELEASE_ROLES)
    )
    can_cancel = (
        status in CANCELLABLE_STATUSES
        and (is_owner or _has_privilege(role, HR_ROLES))
    )
    can_resubmit = status == RequestStatus.INCOMPLETE and is_owner

    return AccessGrant(
        can_mark_ready=can_prescreen,
        can_mark_incomplete=can_prescreen,
        can_move_to_review=can_move_to_review,
        can_assign_approver=can_assign_approver,
        can_approve=can_approve,
        can_release=can_release,
        can_cancel=can_cancel,
        can_resubmit=can_resubmit,
    )
