"""
Bearer-token parsing.

Runs before every /api/v1/ request and fills ``g.jwt_user_id`` and
``g.jwt_role`` from a valid token; both are reset to None first, so a
request never inherits a previous request's identity. The hook itself
never rejects anything. ``login_required`` turns a missing identity into 401.
"""

import logging

import jwt
from flask import g, request

from goldenbridge.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)

PUBLIC_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/health",
)


def _bearer_token():
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme != "Bearer" or not token:
        return None
    return token.strip()


def init_jwt_middleware(app):
    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_role = None

        if not request.path.startswith("/api/v1/") or request.path.startswith(PUBLIC_PREFIXES):
            return

        token = _bearer_token()
        if token is None:
            return
        try:
            claims = decode_access_token(token)
        except jwt.ExpiredSignatureError:
            logger.debug("Expired token on %s", request.path)
            return
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected token on %s: %s", request.path, exc)
            return
        g.jwt_user_id = claims["sub"]
        g.jwt_role = claims.get("role")
