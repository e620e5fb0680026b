"""Date handling shared by services and blueprints.

Dates arrive as ``YYYY-MM-DD`` from the web client, as full ISO
timestamps from scripts, and as ``DD.MM.YYYY`` from spreadsheet pastes.
"""
from datetime import date, datetime, timezone

_DAY_FIRST = "%d.%m.%Y"


def parse_date(value):
    """Best-effort conversion to ``date``; None when *value* is empty or unreadable."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    for parse in (date.fromisoformat,
                  lambda s: datetime.fromisoformat(s).date(),
                  lambda s: datetime.strptime(s, _DAY_FIRST).date()):
        try:
            return parse(text)
        except ValueError:
            continue
    return None


def parse_date_input(value, field="date"):
    """Like ``parse_date`` but unreadable input raises ValueError naming *field*.

    Empty input is still None; whether the field is required is the caller's call.
    """
    if value in (None, ""):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Invalid {field}. Use YYYY-MM-DD or DD.MM.YYYY.")
    return parsed


def ensure_utc(value):
    """SQLite returns naive datetimes; treat them as UTC before comparing."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
