"""
User directory endpoints.

  GET  /api/v1/users          — users the caller may see (?role=)
  POST /api/v1/users          — admin-only account creation
  GET  /api/v1/users/<id>     — one user, if visible to the caller
"""

from flask import Blueprint, jsonify, request

from goldenbridge.auth import current_user, login_required
from goldenbridge.blueprints import json_body
from goldenbridge.core.exceptions import NotFoundError
from goldenbridge.models.user import USER_ROLES
from goldenbridge.services import user_service
from goldenbridge.services.permission import filter_accessible_users
from goldenbridge.utils.errors import E, api_error

user_bp = Blueprint("user", __name__, url_prefix="/api/v1/users")


@user_bp.route("", methods=["GET"])
@login_required
def list_users():
    role = request.args.get("role") or None
    if role and role not in USER_ROLES:
        return api_error(E.VALIDATION_INVALID, f"role must be one of {sorted(USER_ROLES)}")
    users = user_service.list_accessible_users(current_user(), role)
    return jsonify({"items": [u.to_dict() for u in users], "total": len(users)}), 200


@user_bp.route("", methods=["POST"])
@login_required
def create_user():
    data = json_body()
    if not data.get("email") or not data.get("password"):
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")
    user = user_service.create_user(current_user(), data)
    return jsonify(user.to_dict()), 201


@user_bp.route("/<int:user_id>", methods=["GET"])
@login_required
def get_user(user_id):
    user = user_service.get_user(user_id)
    # Users outside the caller's reach look the same as missing ones
    if not filter_accessible_users(current_user(), [user]):
        raise NotFoundError("User", user_id)
    return jsonify(user.to_dict()), 200
