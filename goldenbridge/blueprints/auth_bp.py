"""
Auth Blueprint — registration, login and the current user's profile.

  POST /api/v1/auth/register    — Create a participant account (optionally via invite)
  POST /api/v1/auth/login       — Email + password → access token
  GET  /api/v1/auth/me          — Current user profile
  PUT  /api/v1/auth/me          — Change name and/or password
"""

import logging

from flask import Blueprint, jsonify

from goldenbridge.auth import current_user, login_required
from goldenbridge.blueprints import json_body
from goldenbridge.models.user import UserRole
from goldenbridge.services import user_service
from goldenbridge.services.jwt_service import token_response
from goldenbridge.utils.errors import E, api_error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Self-registration. Always creates a participant.

    Body: { "name": "...", "email": "...", "password": "...", "invite_code": "..." }
    """
    data = json_body()
    if not data.get("email") or not data.get("password"):
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = user_service.register_user(
        data.get("name"),
        data.get("email"),
        data.get("password"),
        role=UserRole.PARTICIPANT,
        invite_code=data.get("invite_code") or None,
    )
    return jsonify(token_response(user)), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password.

    Body: { "email": "...", "password": "..." }
    """
    data = json_body()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = user_service.authenticate(email, password)
    if not user:
        logger.info("Failed login for %s", email)
        return api_error(E.UNAUTHORIZED, "Invalid email or password")

    logger.info("User %s logged in", user.id)
    return jsonify(token_response(user)), 200


# ═══════════════════════════════════════════════════════════════
# /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user().to_dict()), 200


@auth_bp.route("/me", methods=["PUT"])
@login_required
def update_me():
    user = current_user()
    user = user_service.update_profile(user, user, json_body())
    return jsonify(user.to_dict()), 200
