"""
Field validation for markers and suggestions.

Covers:
  - Coordinate boundaries (inclusive ±90 / ±180, just-outside rejected)
  - Title presence and 100-character limit, whitespace-only titles
  - All failing rules collected in rule order
  - Style defaults applied (solid / black / blue)
  - Suggestion status defaulting and allowed values
  - Flag and date coercion
"""

from datetime import datetime, timedelta, timezone

import pytest

from markermap.core.exceptions import ValidationError
from markermap.services.validation import (
    coerce_datetime,
    coerce_flag,
    validate_marker_data,
    validate_suggestion_data,
)


def _marker(**overrides):
    data = {"lat": 51.5, "lng": -0.09, "title": "Lake Park"}
    data.update(overrides)
    return data


def _messages(data, validator=validate_marker_data):
    with pytest.raises(ValidationError) as exc_info:
        validator(data)
    return exc_info.value.messages


# ═════════════════════════════════════════════════════════════════════════════
# Coordinates
# ═════════════════════════════════════════════════════════════════════════════


class TestCoordinates:
    @pytest.mark.parametrize("lat", [90, -90, 0, 89.9999])
    def test_latitude_boundaries_accepted(self, lat):
        assert validate_marker_data(_marker(lat=lat))["lat"] == float(lat)

    @pytest.mark.parametrize("lng", [180, -180, 179.9999])
    def test_longitude_boundaries_accepted(self, lng):
        assert validate_marker_data(_marker(lng=lng))["lng"] == float(lng)

    def test_latitude_just_outside_rejected(self):
        assert _messages(_marker(lat=90.0001)) == ["Latitude must be between -90 and 90."]

    def test_longitude_just_outside_rejected(self):
        assert _messages(_marker(lng=-180.0001)) == ["Longitude must be between -180 and 180."]

    def test_missing_coordinates(self):
        data = {"title": "Lake Park"}
        assert _messages(data) == ["Latitude is required.", "Longitude is required."]

    def test_non_numeric_coordinate(self):
        assert _messages(_marker(lat="north")) == ["Latitude must be a number."]

    def test_boolean_is_not_a_number(self):
        assert _messages(_marker(lng=True)) == ["Longitude must be a number."]

    def test_numeric_strings_are_coerced(self):
        clean = validate_marker_data(_marker(lat=" 51.5 ", lng="-0.09"))
        assert clean["lat"] == 51.5
        assert clean["lng"] == -0.09


# ═════════════════════════════════════════════════════════════════════════════
# Title
# ═════════════════════════════════════════════════════════════════════════════


class TestTitle:
    def test_title_of_100_chars_accepted(self):
        assert len(validate_marker_data(_marker(title="x" * 100))["title"]) == 100

    def test_title_of_101_chars_rejected(self):
        assert _messages(_marker(title="x" * 101)) == ["Title must be 100 characters or fewer."]

    def test_missing_title(self):
        assert _messages(_marker(title=None)) == ["Title is required."]

    def test_whitespace_only_title_is_empty(self):
        assert _messages(_marker(title="   ")) == ["Title is required."]

    def test_title_is_trimmed(self):
        assert validate_marker_data(_marker(title="  Lake Park "))["title"] == "Lake Park"


# ═════════════════════════════════════════════════════════════════════════════
# Aggregation, defaults, filtering
# ═════════════════════════════════════════════════════════════════════════════


class TestAggregation:
    def test_all_failures_collected_in_rule_order(self):
        messages = _messages({"lat": 95, "lng": "east"})
        assert messages == [
            "Title is required.",
            "Latitude must be between -90 and 90.",
            "Longitude must be a number.",
        ]

    def test_error_string_joins_messages(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_marker_data({"title": ""})
        assert str(exc_info.value) == "Title is required.\nLatitude is required.\nLongitude is required."

    def test_style_defaults_applied(self):
        clean = validate_marker_data(_marker())
        assert clean["icon_variant"] == "solid"
        assert clean["icon_color"] == "black"
        assert clean["marker_color"] == "blue"

    def test_explicit_style_kept(self):
        clean = validate_marker_data(_marker(icon_variant="regular", marker_color="red"))
        assert clean["icon_variant"] == "regular"
        assert clean["marker_color"] == "red"

    def test_unknown_icon_variant_rejected(self):
        assert _messages(_marker(icon_variant="sparkly")) == [
            "Icon variant must be one of: brands, duotone, light, regular, solid."
        ]

    def test_icon_variant_checked_after_coordinates(self):
        messages = _messages({"title": "Lake Park", "lat": 91, "lng": 0, "icon_var": "bold"})
        assert messages == [
            "Latitude must be between -90 and 90.",
            "Icon variant must be one of: brands, duotone, light, regular, solid.",
        ]

    def test_legacy_icon_var_alias(self):
        assert validate_marker_data(_marker(icon_var="brands"))["icon_variant"] == "brands"

    def test_unknown_fields_dropped(self):
        clean = validate_marker_data(_marker(id=7, thread_id=99, bogus="x"))
        assert "id" not in clean
        assert "thread_id" not in clean
        assert "bogus" not in clean

    def test_input_not_mutated(self):
        data = _marker(lat="51.5")
        validate_marker_data(data)
        assert data["lat"] == "51.5"
        assert "icon_variant" not in data


# ═════════════════════════════════════════════════════════════════════════════
# Suggestions
# ═════════════════════════════════════════════════════════════════════════════


class TestSuggestionValidation:
    def test_status_defaults_to_pending(self):
        assert validate_suggestion_data(_marker())["status"] == "pending"

    @pytest.mark.parametrize("status", ["pending", "approved", "rejected"])
    def test_known_statuses_accepted(self, status):
        assert validate_suggestion_data(_marker(status=status))["status"] == status

    def test_unknown_status_rejected(self):
        messages = _messages(_marker(status="archived"), validate_suggestion_data)
        assert messages == ["Invalid status 'archived'."]

    def test_status_checked_after_common_rules(self):
        messages = _messages({"lat": 1, "lng": 1, "status": "nope"}, validate_suggestion_data)
        assert messages == ["Title is required.", "Invalid status 'nope'."]

    def test_active_is_not_a_suggestion_field(self):
        assert "active" not in validate_suggestion_data(_marker(active=True))


# ═════════════════════════════════════════════════════════════════════════════
# Coercion helpers
# ═════════════════════════════════════════════════════════════════════════════


class TestCoercion:
    @pytest.mark.parametrize("raw,expected", [
        ("1", True), ("true", True), ("Yes", True), ("on", True),
        ("0", False), ("false", False), ("", False), (1, True), (0, False),
    ])
    def test_coerce_flag(self, raw, expected):
        assert coerce_flag(raw) is expected

    def test_coerce_datetime_iso(self):
        value = coerce_datetime("2026-06-01T18:00:00Z")
        assert value == datetime(2026, 6, 1, 18, 0, tzinfo=timezone.utc)

    def test_coerce_datetime_offset_converted_to_utc(self):
        value = coerce_datetime("2026-06-01T20:00:00+02:00")
        assert value.utcoffset() == timedelta(0)
        assert (value.hour, value.minute) == (18, 0)

    def test_coerce_datetime_aware_object_converted_to_utc(self):
        cest = timezone(timedelta(hours=2))
        value = coerce_datetime(datetime(2026, 6, 1, 20, 0, tzinfo=cest))
        assert value.tzinfo == timezone.utc
        assert value.hour == 18

    def test_coerce_datetime_naive_is_utc(self):
        value = coerce_datetime("2026-06-01 18:00:00")
        assert value.tzinfo == timezone.utc

    def test_coerce_datetime_epoch(self):
        assert coerce_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)
        assert coerce_datetime("86400") == datetime(1970, 1, 2, tzinfo=timezone.utc)

    def test_coerce_datetime_empty(self):
        assert coerce_datetime("") is None
        assert coerce_datetime(None) is None

    def test_invalid_date_reported(self):
        messages = _messages(_marker(end_date="next tuesday"))
        assert messages == ["End date is not a valid date."]

    def test_flags_coerced_in_validation(self):
        clean = validate_marker_data(_marker(create_thread="1", thread_lock="0", active="true"))
        assert clean["create_thread"] is True
        assert clean["thread_lock"] is False
        assert clean["active"] is True
