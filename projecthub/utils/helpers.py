"""Shared input-normalisation helpers for services and blueprints.

parse_date_input:  ISO date strings -> date, raises ValueError on bad input
clean_text:        strip strings, map blank to None
coerce_id:         accept int or numeric string ids from form-style payloads
"""
from datetime import date, datetime


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, full ISO datetimes (``.date()`` is taken),
    DD.MM.YYYY and date objects. Empty input returns None.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError("Invalid date format. Use YYYY-MM-DD.") from exc


def clean_text(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_id(value):
    """Return ``value`` as an int id, or None when it is empty.

    Raises ValueError for anything that is not an integer id.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("Invalid id")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text.lstrip("-").isdigit():
        raise ValueError("Invalid id")
    return int(text)
