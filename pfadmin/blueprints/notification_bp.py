"""
Provident Fund Back Office
Notification Blueprint.

Provides:
    GET  /api/v1/notifications?recipient_id=&unread_only=&limit=&offset=
    GET  /api/v1/notifications/unread-count?recipient_id=
    POST /api/v1/notifications/<id>/read
    POST /api/v1/notifications/read-all   {recipient_id}
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from pfadmin.services.notification import NotificationService
from pfadmin.utils.errors import E, api_error
from pfadmin.utils.helpers import parse_int

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")


def _recipient_id(source):
    try:
        recipient_id = parse_int(source.get("recipient_id"))
    except ValueError:
        return None, api_error(E.VALIDATION_INVALID, "recipient_id must be an integer")
    if recipient_id is None:
        return None, api_error(E.VALIDATION_REQUIRED, "recipient_id is required")
    return recipient_id, None


@notification_bp.route("", methods=["GET"])
def list_notifications():
    """List notifications for a recipient, newest first."""
    recipient_id, err = _recipient_id(request.args)
    if err:
        return err
    unread_only = request.args.get("unread_only", "false").lower() == "true"
    limit = max(0, min(request.args.get("limit", 50, type=int), 200))
    offset = max(0, request.args.get("offset", 0, type=int))

    items, total = NotificationService.list_for_recipient(
        recipient_id, unread_only=unread_only, limit=limit, offset=offset,
    )
    return jsonify({"items": [n.to_dict() for n in items], "total": total}), 200


@notification_bp.route("/unread-count", methods=["GET"])
def unread_count():
    recipient_id, err = _recipient_id(request.args)
    if err:
        return err
    return jsonify({"unread_count": NotificationService.unread_count(recipient_id)}), 200


@notification_bp.route("/<int:notification_id>/read", methods=["POST"])
def mark_read(notification_id: int):
    notif = NotificationService.mark_read(notification_id)
    if notif is None:
        return api_error(E.NOT_FOUND, "Notification not found")
    return jsonify(notif.to_dict()), 200


@notification_bp.route("/read-all", methods=["POST"])
def mark_all_read():
    recipient_id, err = _recipient_id(request.get_json(silent=True) or {})
    if err:
        return err
    count = NotificationService.mark_all_read(recipient_id)
    return jsonify({"marked": count}), 200
