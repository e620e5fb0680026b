"""
Golden Bridge Women
Notification Blueprint.

Every route works on the caller's own notifications only.

    GET    /api/v1/notifications                  — ?unread_only=1&limit=
    GET    /api/v1/notifications/unread-count
    POST   /api/v1/notifications/<id>/read
    POST   /api/v1/notifications/read-all
    DELETE /api/v1/notifications/<id>
    DELETE /api/v1/notifications                  — clear all
    POST   /api/v1/notifications/check-deadlines  — run the 7/3/1-day deadline scan
"""

import logging

from flask import Blueprint, jsonify, request

from goldenbridge.auth import current_user, login_required
from goldenbridge.blueprints import optional_int
from goldenbridge.services.notification_service import NotificationService
from goldenbridge.utils.errors import E, api_error

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notification", __name__, url_prefix="/api/v1/notifications")


@notification_bp.route("", methods=["GET"])
@login_required
def list_notifications():
    user = current_user()
    unread_only = request.args.get("unread_only", "").lower() in ("1", "true", "yes")
    limit = optional_int(request.args.get("limit"), "limit")
    items = NotificationService.list_for_user(user.id, unread_only=unread_only, limit=limit)
    return jsonify({
        "items": [n.to_dict() for n in items],
        "total": len(items),
        "unread_count": NotificationService.unread_count(user.id),
    }), 200


@notification_bp.route("/unread-count", methods=["GET"])
@login_required
def unread_count():
    return jsonify({"unread_count": NotificationService.unread_count(current_user().id)}), 200


@notification_bp.route("/<int:notification_id>/read", methods=["POST"])
@login_required
def mark_read(notification_id):
    notif = NotificationService.mark_as_read(current_user().id, notification_id)
    if not notif:
        return api_error(E.NOT_FOUND, "Notification not found")
    return jsonify(notif.to_dict()), 200


@notification_bp.route("/read-all", methods=["POST"])
@login_required
def mark_all_read():
    count = NotificationService.mark_all_as_read(current_user().id)
    return jsonify({"marked_read": count}), 200


@notification_bp.route("/<int:notification_id>", methods=["DELETE"])
@login_required
def delete_notification(notification_id):
    if not NotificationService.delete(current_user().id, notification_id):
        return api_error(E.NOT_FOUND, "Notification not found")
    return jsonify({"deleted": True, "id": notification_id}), 200


@notification_bp.route("", methods=["DELETE"])
@login_required
def clear_all():
    count = NotificationService.clear_all(current_user().id)
    return jsonify({"deleted": count}), 200


@notification_bp.route("/check-deadlines", methods=["POST"])
@login_required
def check_deadlines():
    created = NotificationService.check_deadlines(current_user().id)
    return jsonify({"created": [n.to_dict() for n in created], "count": len(created)}), 200
