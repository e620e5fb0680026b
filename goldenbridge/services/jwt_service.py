"""
Access tokens for the API (PyJWT, HS256).

A token carries the user id as a string ``sub`` plus the role, so the JWT
middleware can set ``g.jwt_user_id`` / ``g.jwt_role`` without a query.
Lifetime is ``JWT_ACCESS_EXPIRES`` seconds; there are no refresh tokens,
the client logs in again.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

ALGORITHM = "HS256"
TOKEN_TYPE = "access"


def _signing_key() -> str:
    cfg = current_app.config
    return cfg.get("JWT_SECRET_KEY") or cfg["SECRET_KEY"]


def _lifetime_seconds() -> int:
    return int(current_app.config.get("JWT_ACCESS_EXPIRES", 3600))


def generate_access_token(user_id: int, role: str) -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "role": role,
        "type": TOKEN_TYPE,
        "iat": issued,
        "exp": issued + timedelta(seconds=_lifetime_seconds()),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def token_response(user) -> dict:
    """Login / register payload."""
    return {
        "access_token": generate_access_token(user.id, user.role),
        "token_type": "Bearer",
        "expires_in": _lifetime_seconds(),
        "user": user.to_dict(),
    }


def decode_access_token(token: str) -> dict:
    """Verify *token* and return its claims with ``sub`` as an int.

    Raises ``jwt.InvalidTokenError`` (or its subclass
    ``ExpiredSignatureError``) for anything that is not a live access token.
    """
    claims = jwt.decode(token, _signing_key(), algorithms=[ALGORITHM])
    if claims.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError("not an access token")
    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub.isdigit():
        raise jwt.InvalidTokenError("token subject is not a user id")
    claims["sub"] = int(sub)
    return claims
