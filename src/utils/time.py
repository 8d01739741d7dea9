from __future__ import annotations

import datetime as dt
import os
from functools import lru_cache
from typing import Any
from zoneinfo import ZoneInfo

UTC = dt.timezone.utc

_DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d", "%m-%d-%Y", "%m-%d-%y")


def utcnow() -> dt.datetime:
    return dt.datetime.now(UTC)


def current_timestamp() -> dt.datetime:
    # Second precision keeps cache files and API payloads readable.
    return utcnow().replace(microsecond=0)


def today() -> dt.date:
    return utcnow().date()


@lru_cache(maxsize=32)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def ui_timezone_name() -> str:
    return os.environ.get("UI_TIMEZONE", "Asia/Kolkata").strip() or "Asia/Kolkata"


def ensure_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_datetime(value: Any) -> dt.datetime | None:
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        # Support "Z" suffix.
        s = s.replace("Z", "+00:00")
        try:
            return dt.datetime.fromisoformat(s)
        except ValueError:
            return None
    return None


def parse_date(value: Any) -> dt.date:
    """
    Parse a calendar date from ISO (`2024-12-31`, or a full ISO timestamp) or the
    common US spreadsheet formats (`12/31/2024`, `12-31-2024`).
    """
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    s = str(value or "").strip()
    if not s:
        raise ValueError("Missing date")
    try:
        return dt.date.fromisoformat(s[:10])
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return dt.datetime.strptime(s.split()[0], fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date: {value!r}")


def parse_date_or_none(value: Any) -> dt.date | None:
    try:
        return parse_date(value)
    except ValueError:
        return None


def to_local(value: Any, *, tz_name: str | None = None) -> dt.datetime | None:
    d = parse_datetime(value)
    if d is None:
        return None
    tz = _zone(tz_name or ui_timezone_name())
    return ensure_utc(d).astimezone(tz)


def format_local(value: Any, fmt: str = "%Y-%m-%d %H:%M:%S %Z", tz_name: str | None = None) -> str:
    if value is None:
        return "—"
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return value.isoformat()
    d = to_local(value, tz_name=tz_name)
    if d is None:
        return str(value)
    return d.strftime(fmt)


def format_display_date(value: Any) -> str:
    """`2024-01-05` -> `Jan 5, 2024`; blank for missing values."""
    if value is None or value == "":
        return ""
    d = parse_date_or_none(value)
    if d is None:
        return str(value)
    return f"{d.strftime('%b')} {d.day}, {d.year}"
