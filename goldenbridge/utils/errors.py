"""JSON error bodies for the API.

Every error the API returns has the same shape::

    {"error": "Milestone not found", "code": "ERR_NOT_FOUND", "details": {...}}

``details`` is omitted when empty. Views return ``api_error(...)`` directly;
service exceptions reach it through the handlers registered in create_app.
"""

from __future__ import annotations

from flask import jsonify


class E:
    """Error codes. The HTTP status for each lives in ``STATUS_FOR``."""

    # request could not be read (missing field, bad format)
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"
    # request was readable but breaks a rule
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"

    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"
    NOT_FOUND = "ERR_NOT_FOUND"

    # duplicate email, second week-N report, already enrolled
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    # assignment workflow move not allowed from the current state
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    INTERNAL = "ERR_INTERNAL"


STATUS_FOR: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_CONSTRAINT: 422,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.INTERNAL: 500,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """Build ``(response, status)`` for a view to return.

    ``status`` overrides the code's usual status, e.g. 415 for a wrong
    Content-Type reported as ``E.VALIDATION_INVALID``.
    """
    body = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or STATUS_FOR.get(code, 400)
