"""
Marker Map Moderation Platform
Marker / suggestion field validation.

Pure functions: no database access, no side effects on the input.

Rules run in a fixed order (title, lat, lng, icon variant, then status for
suggestions) and every failure is collected, so a caller sees all problems
at once:

    try:
        clean = validate_marker_data(payload)
    except ValidationError as exc:
        exc.messages   # ["Title is required.", "Latitude must be between -90 and 90."]

Visual-style defaults are applied to the returned dict whether or not the
payload passes, so a record that omits them always ends up solid/black/blue.
"""

import numbers
from datetime import datetime, timezone

from markermap.core.exceptions import ValidationError
from markermap.models.marker import (
    DEFAULT_ICON_COLOR,
    DEFAULT_ICON_VARIANT,
    DEFAULT_MARKER_COLOR,
    ICON_VARIANTS,
    SHARED_FIELDS,
    SUGGESTION_STATUSES,
)

TITLE_MAX_LENGTH = 100

MARKER_FIELDS = SHARED_FIELDS + ("active",)
SUGGESTION_FIELDS = SHARED_FIELDS + ("status",)

_FLAG_FIELDS = ("active", "create_thread", "thread_lock")
_DATE_FIELDS = ("start_date", "end_date")
_TRUE_STRINGS = {"1", "true", "yes", "on"}

# Legacy export column names accepted on input
_FIELD_ALIASES = {"icon_var": "icon_variant"}


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_number(value):
    """Return ``value`` as float, or None when it is not numeric.

    Booleans are rejected even though they are ints in Python.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def coerce_flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _as_utc(value: datetime) -> datetime:
    # Naive input is taken as UTC; SQLite drops the offset on storage.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_datetime(value):
    """Accept a datetime, an ISO-8601 string, or unix epoch seconds.

    Returns an aware UTC datetime, None for empty input, and raises
    ValueError for anything unparseable.
    """
    if _is_empty(value):
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, bool):
        raise ValueError(f"not a date: {value!r}")
    if isinstance(value, numbers.Real):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return datetime.fromtimestamp(int(text), tz=timezone.utc)
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    raise ValueError(f"not a date: {value!r}")


def _check_coordinate(data: dict, key: str, label: str, limit: int, errors: list[str]) -> None:
    value = data.get(key)
    if _is_empty(value):
        errors.append(f"{label} is required.")
        return
    number = _coerce_number(value)
    if number is None:
        errors.append(f"{label} must be a number.")
        return
    if not -limit <= number <= limit:
        errors.append(f"{label} must be between -{limit} and {limit}.")
        return
    data[key] = number


def _normalise(data: dict, allowed: tuple) -> dict:
    clean = {}
    for key, value in (data or {}).items():
        key = _FIELD_ALIASES.get(key, key)
        if key in allowed:
            clean[key] = value
    return clean


def _apply_style_defaults(data: dict) -> None:
    if _is_empty(data.get("icon_variant")):
        data["icon_variant"] = DEFAULT_ICON_VARIANT
    if _is_empty(data.get("icon_color")):
        data["icon_color"] = DEFAULT_ICON_COLOR
    if _is_empty(data.get("marker_color")):
        data["marker_color"] = DEFAULT_MARKER_COLOR


def _check_common(data: dict, errors: list[str]) -> None:
    title = data.get("title")
    if _is_empty(title):
        errors.append("Title is required.")
    else:
        title = str(title).strip()
        if len(title) > TITLE_MAX_LENGTH:
            errors.append(f"Title must be {TITLE_MAX_LENGTH} characters or fewer.")
        else:
            data["title"] = title

    _check_coordinate(data, "lat", "Latitude", 90, errors)
    _check_coordinate(data, "lng", "Longitude", 180, errors)

    if data["icon_variant"] not in ICON_VARIANTS:
        errors.append(
            f"Icon variant must be one of: {', '.join(sorted(ICON_VARIANTS))}."
        )

    for key in _FLAG_FIELDS:
        if key in data and data[key] is not None:
            data[key] = coerce_flag(data[key])

    for key in _DATE_FIELDS:
        if key in data:
            try:
                data[key] = coerce_datetime(data[key])
            except (TypeError, ValueError, OverflowError, OSError):
                errors.append(f"{key.replace('_', ' ').capitalize()} is not a valid date.")


def validate_marker_data(data: dict) -> dict:
    """Validate marker input and return a cleaned copy with defaults applied.

    Raises:
        ValidationError: one message per failing rule, in rule order.
    """
    clean = _normalise(data, MARKER_FIELDS)
    _apply_style_defaults(clean)
    errors: list[str] = []
    _check_common(clean, errors)
    if errors:
        raise ValidationError(errors)
    return clean


def validate_suggestion_data(data: dict) -> dict:
    """Validate suggestion input; additionally defaults and checks ``status``."""
    clean = _normalise(data, SUGGESTION_FIELDS)
    _apply_style_defaults(clean)
    if _is_empty(clean.get("status")):
        clean["status"] = "pending"
    errors: list[str] = []
    _check_common(clean, errors)
    if clean["status"] not in SUGGESTION_STATUSES:
        errors.append(f"Invalid status '{clean['status']}'.")
    if errors:
        raise ValidationError(errors)
    return clean
