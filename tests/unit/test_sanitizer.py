"""Unit tests for property sanitization."""

import math
from datetime import datetime, timezone

from aizu.models import EventType
from aizu.sanitizer import (
    normalize_identify_properties,
    sanitize_properties,
    sanitize_value,
    split_required,
    truncate_url,
)


class TestPropertyLimits:
    """Tests for key count and length caps."""

    def test_limits_custom_keys(self):
        """Test at most 100 custom keys are kept alongside required ones."""
        properties = {f"prop_{i}": f"value_{i}" for i in range(150)}

        result = sanitize_properties(properties, {"event_name": "test_event"})

        assert len(result) == 101
        assert result["event_name"] == "test_event"
        assert "prop_99" in result
        assert "prop_100" not in result

    def test_keeps_insertion_order(self):
        """Test the first keys by insertion order survive the cap."""
        properties = {f"k{i}": i for i in reversed(range(120))}

        result = sanitize_properties(properties)

        assert list(result) == [f"k{i}" for i in reversed(range(20, 120))]

    def test_truncates_long_strings(self):
        """Test strings are cut to exactly 1000 characters."""
        result = sanitize_properties({"long_value": "x" * 1500, "short": "ok"})

        assert len(result["long_value"]) == 1000
        assert result["short"] == "ok"

    def test_url_properties_use_url_cap(self):
        """Test URL-valued keys are cut at 2048 characters."""
        long_url = "https://example.com/" + "a" * 3000

        result = sanitize_properties({"url": long_url, "referrer": long_url})

        assert len(result["url"]) == 2048
        assert len(result["referrer"]) == 2048

    def test_truncate_url(self):
        """Test truncate_url caps at exactly 2048."""
        assert len(truncate_url("https://example.com/" + "a" * 3000)) == 2048
        assert truncate_url("https://example.com") == "https://example.com"
        assert truncate_url(None) == ""

    def test_none_properties(self):
        """Test missing properties yield only required keys."""
        assert sanitize_properties(None, {"group_id": "g_1"}) == {"group_id": "g_1"}


class TestRequiredKeys:
    """Tests for system keys injected per event type."""

    def test_required_keys_override_caller_values(self):
        """Test callers cannot overwrite required keys."""
        result = sanitize_properties({"event_name": "spoofed"}, {"event_name": "real"})

        assert result["event_name"] == "real"

    def test_required_keys_do_not_count_against_cap(self):
        """Test colliding keys don't consume custom slots."""
        properties = {"$user_id": "ignored"}
        properties.update({f"p{i}": i for i in range(100)})

        result = sanitize_properties(properties, {"$user_id": "user_1"})

        assert len(result) == 101
        assert result["$user_id"] == "user_1"
        assert "p99" in result

    def test_required_url_keys_use_url_cap(self):
        """Test required URL values get the URL cap, not the string cap."""
        referrer = "https://ref.example.com/" + "r" * 1800

        result = sanitize_properties(None, {"page_title": "t" * 1500, "referrer": referrer})

        assert result["referrer"] == referrer
        assert len(result["page_title"]) == 1000

    def test_split_required_by_event_type(self):
        """Test system keys are separated from custom keys per event type."""
        custom, required = split_required(
            {"a": 1, "event_name": "signup", "$user_id": "u"}, EventType.CUSTOM
        )

        assert custom == {"a": 1, "$user_id": "u"}
        assert required == {"event_name": "signup"}

    def test_split_required_pageview(self):
        custom, required = split_required(
            {"plan": "pro", "referrer": "https://g.co", "page_title": "Home"}, EventType.PAGEVIEW
        )

        assert custom == {"plan": "pro"}
        assert required == {"referrer": "https://g.co", "page_title": "Home"}


class TestIdentifyAliases:
    """Tests for legacy identify property names."""

    def test_legacy_keys_renamed(self):
        """Test email and name map to canonical keys."""
        result = sanitize_properties(
            {"email": "legacy@example.com", "name": "Legacy User"},
            {"$user_id": "user_456"},
            event_type=EventType.IDENTIFY,
        )

        assert result == {
            "$user_id": "user_456",
            "$email": "legacy@example.com",
            "$full_name": "Legacy User",
        }

    def test_canonical_keys_take_precedence(self):
        """Test canonical keys win when both are supplied."""
        result = normalize_identify_properties(
            {"email": "old@example.com", "$email": "new@example.com"}
        )

        assert result == {"$email": "new@example.com"}

    def test_aliases_only_for_identify(self):
        """Test other event types keep plain names."""
        result = sanitize_properties({"name": "button"}, event_type=EventType.CUSTOM)

        assert result == {"name": "button"}


class TestValueNormalization:
    """Tests for value type handling."""

    def test_scalars_pass_through(self):
        """Test JSON scalars are unchanged."""
        assert sanitize_value(100) == 100
        assert sanitize_value(1.5) == 1.5
        assert sanitize_value(True) is True
        assert sanitize_value(None) is None

    def test_non_finite_floats_become_null(self):
        """Test NaN and infinity are not sent."""
        assert sanitize_value(math.nan) is None
        assert sanitize_value(math.inf) is None

    def test_nested_values_sanitized(self):
        """Test nested mappings and sequences are bounded."""
        result = sanitize_value({"tags": ("a", "b" * 2000), "meta": {1: "x" * 1200}})

        assert result["tags"][0] == "a"
        assert len(result["tags"][1]) == 1000
        assert len(result["meta"]["1"]) == 1000

    def test_datetimes_and_objects(self):
        """Test non-JSON values are converted to strings."""
        moment = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        assert sanitize_value(moment) == "2024-01-02T03:04:05+00:00"
        assert sanitize_value(EventType.CUSTOM) == "custom"
        assert sanitize_value(object()).startswith("<object object")
