"""Metadata field parsing utilities."""

import re
from datetime import datetime, timezone
from typing import Any

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_DATE_FORMATS = [
    "%Y:%m:%d %H:%M:%S",
    "%Y:%m:%d %H:%M:%S%z",
    "%Y:%m:%d %H:%M:%S.%f",
    "%Y:%m:%d %H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y:%m:%d",
    "%Y-%m-%d",
]

_TRAILING_Z = re.compile(r"Z$")


def parse_capture_date(date_str: Any) -> datetime | None:
    """Parse an EXIF-style date string.

    Accepts colon or dash separated dates, an optional time, fractional
    seconds and a trailing UTC offset or ``Z``. Dates before the Unix epoch
    are treated as garbage and return None.
    """
    if not date_str or not isinstance(date_str, str):
        return None

    date_str = date_str.strip().rstrip("\x00")
    if not date_str or date_str.startswith("0000"):
        return None

    date_str = _TRAILING_Z.sub("+00:00", date_str)

    parsed = None
    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(date_str, fmt)
            break
        except ValueError:
            continue

    if parsed is None:
        return None

    comparable = parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if comparable < EPOCH:
        return None
    return parsed


def format_capture_date(value: datetime | None) -> str | None:
    """Render a capture date the way the catalog stores it (local wall time)."""
    if value is None:
        return None
    return value.strftime("%Y-%m-%d %H:%M:%S")


def get_first_value(metadata: dict, *keys: str) -> Any:
    """Get first non-None value from metadata by keys."""
    for key in keys:
        if key in metadata and metadata[key] is not None:
            return metadata[key]
    return None


def clean_text(value: Any) -> str | None:
    """Strip whitespace and NUL padding; empty strings become None."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value).strip().strip("\x00").strip()
    return text or None
