"""
Golden Bridge Women
Request authentication helpers.

Provides:
    - ``login_required``: resolves the bearer-token user into g.current_user
    - ``current_user()``: the authenticated User for the active request
    - Content-Type enforcement for state-changing requests (CSRF mitigation)

Security model:
    - All /api/v1/* endpoints need a valid bearer token except register,
      login, health and the public invite lookup
    - What the user may do once authenticated is decided by
      goldenbridge.services.permission, not here
"""

import functools
import logging

from flask import g, request

from goldenbridge.models import db
from goldenbridge.models.user import User
from goldenbridge.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def current_user():
    return getattr(g, "current_user", None)


def login_required(f):
    """
    Decorator: require a valid access token for the endpoint.

    The JWT middleware has already parsed the token into g.jwt_user_id;
    this loads the user row so views and services get a real actor.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user_id = getattr(g, "jwt_user_id", None)
        if not user_id:
            return api_error(E.UNAUTHORIZED, "Authentication required. Provide a Bearer token.")

        user = db.session.get(User, user_id)
        if user is None:
            logger.warning("Token for unknown user %s on %s", user_id, request.path)
            return api_error(E.UNAUTHORIZED, "Invalid token")

        g.current_user = user
        return f(*args, **kwargs)

    return decorated


def _check_content_type():
    """
    For state-changing requests (POST/PUT/PATCH/DELETE), require
    Content-Type: application/json. HTML forms cannot send that type.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length and request.content_length > 0:
            return api_error(
                E.VALIDATION_INVALID,
                "Content-Type must be application/json for state-changing requests",
                status=415,
            )
    return None


def init_auth(app):
    """Install the Content-Type guard on API routes."""
    @app.before_request
    def _before_request_auth():
        if not request.path.startswith("/api/v1/"):
            return None
        if request.method == "OPTIONS":
            return None
        return _check_content_type()
