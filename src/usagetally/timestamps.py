import os
from datetime import datetime, timezone
from typing import Any

# epoch values above this are treated as milliseconds
_MILLIS_THRESHOLD = 1_000_000_000_000


def parse_rfc3339(text: "str") -> "datetime | None":
    """
    parses an RFC 3339 / ISO 8601 timestamp into an aware UTC
    datetime. Naive values are assumed to be UTC.
    """
    text = text.strip()
    if not text:
        return None

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_epoch(value: "int | float") -> "datetime | None":
    if value > _MILLIS_THRESHOLD:
        value = value / 1000
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp_value(value: "Any") -> "datetime | None":
    """
    parses a JSON timestamp that may be an epoch number
    (seconds or milliseconds), a numeric string, or an RFC 3339
    string.
    """
    # bool is an int subclass, never a timestamp
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return parse_epoch(value)
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return parse_epoch(int(stripped))
        return parse_rfc3339(stripped)
    return None


def file_mtime(path: "str | os.PathLike[str]") -> "datetime | None":
    try:
        return datetime.fromtimestamp(os.stat(path).st_mtime, tz=timezone.utc)
    except OSError:
        return None


def resolve_timestamp(*candidates: "datetime | None") -> "datetime | None":
    """
    returns the first resolved candidate. Callers pass them in
    priority order: record timestamp, session/file-level timestamp,
    file modification time.
    """
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None
