"""
Golden Bridge Women
Request-parsing helpers shared by the API blueprints.
"""

from flask import request

from goldenbridge.core.exceptions import ValidationError

DEFAULT_PAGE_SIZE = 200
MAX_PAGE_SIZE = 1000


def _query_int(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


def paginate_query(query, default_limit=DEFAULT_PAGE_SIZE, max_limit=MAX_PAGE_SIZE):
    """Apply ``?limit=&offset=`` to *query*; returns ``(items, total)``.

    Unreadable values fall back to the defaults rather than failing the request.
    """
    limit = min(max(_query_int("limit", default_limit), 1), max_limit)
    offset = max(_query_int("offset", 0), 0)
    return query.limit(limit).offset(offset).all(), query.count()


def json_body() -> dict:
    """The request's JSON object, ``{}`` when there is no body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def optional_int(value, field):
    """Coerce a body/query value to int; None stays None."""
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be an integer", details={field: "invalid"}) from exc
