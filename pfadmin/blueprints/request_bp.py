"""
Request Lifecycle Blueprint.

Thin HTTP adapter over LifecycleEngine for HR back-office withdrawal and
loan requests.

All routes live under /api/v1/requests. The acting user is passed
explicitly as ``actor_id``: in the JSON body for POST, in the query string
for GET. Authenticating that id is the job of the deployment's auth layer.

Endpoints:
    POST   /requests                          file a request (actor = employee)
    GET    /requests                          ?status, search, start_date, end_date, request_kind
    GET    /requests/summary                  ?request_kind
    GET    /requests/<id>
    GET    /requests/<id>/history
    GET    /requests/<id>/approvals
    GET    /requests/<id>/access?actor_id=
    POST   /requests/<id>/mark-ready          {actor_id}
    POST   /requests/<id>/mark-incomplete     {actor_id, remarks}
    POST   /requests/<id>/resubmit            {actor_id}
    POST   /requests/<id>/move-to-review      {actor_id}
    POST   /requests/<id>/assign-approvers    {actor_id, approver_ids}
    POST   /requests/<id>/decision            {actor_id, decision, comments?}
    POST   /requests/<id>/release             {actor_id, payment_reference}
    POST   /requests/<id>/cancel              {actor_id, remarks?}

Layer contract:
    - Blueprint: parse input, call engine, serialise.
    - NO db.session calls here; all writes owned by the engine.
    - NO inline role checks; access is resolved inside the engine.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from pfadmin.core.exceptions import ConflictError, LifecycleError, PersistenceError
from pfadmin.services.notification import NotificationService
from pfadmin.services.request_lifecycle import LifecycleEngine
from pfadmin.utils.errors import E, api_error, lifecycle_error
from pfadmin.utils.helpers import parse_date, parse_int

logger = logging.getLogger(__name__)

request_bp = Blueprint("requests", __name__, url_prefix="/api/v1/requests")


# ── Error handlers ────────────────────────────────────────────────────────────


@request_bp.errorhandler(LifecycleError)
def _handle_lifecycle_error(error: LifecycleError):
    # 404 / 422 / 403 / 409 by error code
    return lifecycle_error(error)


@request_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    logger.info("Lost update on request %s: %s", error.request_id, error)
    return lifecycle_error(error)


@request_bp.errorhandler(PersistenceError)
def _handle_persistence(error: PersistenceError):
    logger.error("Persistence failure endpoint=%s: %s", request.endpoint, error, exc_info=error)
    return api_error(E.DATABASE, "Request store unavailable", details=error.details())


# ── Helpers ───────────────────────────────────────────────────────────────────


def _engine() -> LifecycleEngine:
    notifier = NotificationService if current_app.config.get("NOTIFICATIONS_ENABLED", True) else None
    return LifecycleEngine(notifier=notifier)


def _body() -> dict:
    return request.get_json(silent=True) or {}


def _actor_id(source: dict):
    """Return (actor_id, err_response)."""
    try:
        actor_id = parse_int(source.get("actor_id"))
    except ValueError:
        return None, api_error(E.VALIDATION_INVALID, "actor_id must be an integer")
    if actor_id is None:
        return None, api_error(E.VALIDATION_REQUIRED, "actor_id is required")
    return actor_id, None


def _request_payload(req):
    return jsonify({"success": True, "request": req.to_dict()}), 200


# ── Queries ───────────────────────────────────────────────────────────────────


@request_bp.route("", methods=["GET"])
def list_requests():
    """List requests, newest first.

    Query params: status, search, start_date, end_date (YYYY-MM-DD), request_kind
    """
    try:
        start_date = parse_date(request.args.get("start_date"))
        end_date = parse_date(request.args.get("end_date"))
    except ValueError as exc:
        return api_error(E.VALIDATION_INVALID, str(exc))

    items = _engine().list_requests(
        status=request.args.get("status") or None,
        search=request.args.get("search") or None,
        start_date=start_date,
        end_date=end_date,
        request_kind=request.args.get("request_kind") or None,
    )
    return jsonify({"items": [r.to_dict() for r in items], "total": len(items)}), 200


@request_bp.route("/summary", methods=["GET"])
def status_summary():
    summary = _engine().status_summary(request.args.get("request_kind") or None)
    return jsonify({"summary": summary}), 200


@request_bp.route("/<int:request_id>", methods=["GET"])
def get_request(request_id: int):
    return jsonify(_engine().get_by_id(request_id).to_dict()), 200


@request_bp.route("/<int:request_id>/history", methods=["GET"])
def get_history(request_id: int):
    """Return the immutable transition log, oldest first."""
    history = _engine().get_history(request_id)
    return jsonify({"history": [h.to_dict() for h in history], "total": len(history)}), 200


@request_bp.route("/<int:request_id>/approvals", methods=["GET"])
def get_approvals(request_id: int):
    """Return the approval chain in decision order."""
    steps = _engine().get_approvals(request_id)
    return jsonify({"approvals": [s.to_dict() for s in steps], "total": len(steps)}), 200


@request_bp.route("/<int:request_id>/access", methods=["GET"])
def get_access(request_id: int):
    actor_id, err = _actor_id(request.args)
    if err:
        return err
    grant = _engine().get_access(actor_id, request_id)
    return jsonify({"actor_id": actor_id, "access": grant.to_dict()}), 200


# ── Filing ────────────────────────────────────────────────────────────────────


@request_bp.route("", methods=["POST"])
def submit_request():
    """File a request as the acting employee. Returns 201."""
    data = _body()
    actor_id, err = _actor_id(data)
    if err:
        return err
    req = _engine().submit_request(
        actor_id,
        request_kind=data.get("request_kind") or "withdrawal",
        request_type=data.get("request_type"),
        payout_amount=data.get("payout_amount"),
        purpose_detail=data.get("purpose_detail"),
    )
    return jsonify(req.to_dict()), 201


# ── Transitions ───────────────────────────────────────────────────────────────


@request_bp.route("/<int:request_id>/mark-ready", methods=["POST"])
def mark_ready(request_id: int):
    actor_id, err = _actor_id(_body())
    if err:
        return err
    return _request_payload(_engine().mark_ready(actor_id, request_id))


@request_bp.route("/<int:request_id>/mark-incomplete", methods=["POST"])
def mark_incomplete(request_id: int):
    data = _body()
    actor_id, err = _actor_id(data)
    if err:
        return err
    return _request_payload(_engine().mark_incomplete(actor_id, request_id, data.get("remarks")))


@request_bp.route("/<int:request_id>/resubmit", methods=["POST"])
def resubmit(request_id: int):
    actor_id, err = _actor_id(_body())
    if err:
        return err
    return _request_payload(_engine().resubmit(actor_id, request_id))


@request_bp.route("/<int:request_id>/move-to-review", methods=["POST"])
def move_to_review(request_id: int):
    actor_id, err = _actor_id(_body())
    if err:
        return err
    return _request_payload(_engine().move_to_review(actor_id, request_id))


@request_bp.route("/<int:request_id>/assign-approvers", methods=["POST"])
def assign_approvers(request_id: int):
    """Body: {actor_id, approver_ids: [first, second, ...]} in decision order."""
    data = _body()
    actor_id, err = _actor_id(data)
    if err:
        return err
    raw_ids = data.get("approver_ids")
    if raw_ids is not None and not isinstance(raw_ids, list):
        return api_error(E.VALIDATION_INVALID, "approver_ids must be a list")
    try:
        approver_ids = [parse_int(v) for v in raw_ids or []]
    except ValueError:
        return api_error(E.VALIDATION_INVALID, "approver_ids must be integers")
    if None in approver_ids:
        return api_error(E.VALIDATION_INVALID, "approver_ids must be integers")
    return _request_payload(_engine().assign_approvers(actor_id, request_id, approver_ids))


@request_bp.route("/<int:request_id>/decision", methods=["POST"])
def decide(request_id: int):
    """Body: {actor_id, decision: "Approved" | "Rejected", comments?}"""
    data = _body()
    actor_id, err = _actor_id(data)
    if err:
        return err
    decision = (data.get("decision") or "").strip()
    return _request_payload(_engine().decide(actor_id, request_id, decision, data.get("comments")))


@request_bp.route("/<int:request_id>/release", methods=["POST"])
def release(request_id: int):
    data = _body()
    actor_id, err = _actor_id(data)
    if err:
        return err
    return _request_payload(_engine().release(actor_id, request_id, data.get("payment_reference")))


@request_bp.route("/<int:request_id>/cancel", methods=["POST"])
def cancel(request_id: int):
    data = _body()
    actor_id, err = _actor_id(data)
    if err:
        return err
    return _request_payload(_engine().cancel(actor_id, request_id, data.get("remarks")))
