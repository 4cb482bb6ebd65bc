"""
Sanitizer.

Bounds caller-supplied properties before they become events: the number of
custom keys, the length of strings and URLs, and the set of value types.
Sanitization never raises; values that are not JSON-representable are
stringified.
"""

import math
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from aizu.config import Limits
from aizu.models import EventType


# Legacy identify keys and the canonical names that replace them
IDENTIFY_ALIASES = {
    "email": "$email",
    "name": "$full_name",
}

# Property keys holding URLs, which get the longer URL cap
URL_PROPERTY_KEYS = frozenset({"url", "href", "referrer", "$current_url"})

# System keys each event type carries outside the custom key cap
REQUIRED_KEYS = {
    EventType.PAGEVIEW: ("page_title", "referrer", "viewport"),
    EventType.CUSTOM: ("event_name",),
    EventType.IDENTIFY: ("$user_id",),
    EventType.GROUP_IDENTIFY: ("group_id",),
}


def truncate_string(value: str, limit: int = Limits.MAX_STRING_LENGTH) -> str:
    return value if len(value) <= limit else value[:limit]


def truncate_url(value: Optional[str]) -> str:
    """Cap a URL at the maximum URL length."""
    if not value:
        return ""
    return truncate_string(str(value), Limits.MAX_URL_LENGTH)


def sanitize_value(value: Any, limit: int = Limits.MAX_STRING_LENGTH) -> Any:
    """
    Reduce a value to bounded JSON-representable data.

    Strings are truncated, mappings and sequences are sanitized recursively,
    non-finite floats become None, everything else is stringified.
    """
    if value is None or isinstance(value, bool) or isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Enum):
        return sanitize_value(value.value, limit)
    if isinstance(value, str):
        return truncate_string(value, limit)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): sanitize_value(v, limit) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize_value(v, limit) for v in value]
    return truncate_string(str(value), limit)


def normalize_identify_properties(properties: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Rename legacy identify keys to their canonical ``$`` names.

    A canonical key supplied by the caller wins over its legacy alias; the
    alias is dropped in both cases.
    """
    normalized = dict(properties)
    for legacy, canonical in IDENTIFY_ALIASES.items():
        if legacy not in normalized:
            continue
        value = normalized.pop(legacy)
        if canonical not in normalized:
            normalized[canonical] = value
    return normalized


def _limit_for(key: str) -> int:
    return Limits.MAX_URL_LENGTH if key in URL_PROPERTY_KEYS else Limits.MAX_STRING_LENGTH


def split_required(
    properties: Optional[Mapping[str, Any]],
    event_type: EventType,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Separate the system keys of `event_type` from the custom properties.

    Used for pre-built events, whose system keys arrive mixed in with the
    caller's keys.

    Returns:
        ``(custom, required)`` dicts, each in the original key order.
    """
    system_keys = REQUIRED_KEYS.get(event_type, ())
    custom: Dict[str, Any] = {}
    required: Dict[str, Any] = {}
    for key, value in (properties or {}).items():
        if key in system_keys:
            required[key] = value
        else:
            custom[key] = value
    return custom, required


def sanitize_properties(
    properties: Optional[Mapping[str, Any]],
    required: Optional[Mapping[str, Any]] = None,
    event_type: Optional[EventType] = None,
) -> Dict[str, Any]:
    """
    Sanitize an event's property bag.

    Args:
        properties: Caller-supplied properties
        required: System keys for the event type (``event_name``,
            ``$user_id``, ``group_id``); they override caller keys of the
            same name and do not count against the custom key cap
        event_type: Identify events get legacy key normalization

    Returns:
        A new dict holding the required keys followed by at most
        ``Limits.MAX_CUSTOM_PROPERTIES`` custom keys in insertion order.
    """
    required = required or {}
    custom: Mapping[str, Any] = properties or {}
    if event_type == EventType.IDENTIFY:
        custom = normalize_identify_properties(custom)

    sanitized: Dict[str, Any] = {}
    for key, value in required.items():
        key = str(key)
        sanitized[key] = sanitize_value(value, _limit_for(key))

    kept = 0
    for key, value in custom.items():
        key = str(key)
        if key in sanitized:
            continue
        if kept >= Limits.MAX_CUSTOM_PROPERTIES:
            break
        sanitized[key] = sanitize_value(value, _limit_for(key))
        kept += 1

    return sanitized
