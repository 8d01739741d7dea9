from __future__ import annotations

import datetime as dt

from sqlalchemy.types import DateTime as _DateTime
from sqlalchemy.types import TypeDecorator

from src.utils.time import UTC, parse_datetime


class UTCDateTime(TypeDecorator):
    """
    Timestamp column that round-trips tz-aware UTC datetimes.

    Values are stored naive (SQLite has no timezone type) after conversion to
    UTC; naive inputs are taken to be UTC already. ISO strings from API
    payloads are accepted on write.
    """

    impl = _DateTime
    cache_ok = True

    def process_bind_param(self, value: dt.datetime | str | None, dialect):
        if isinstance(value, str):
            value = parse_datetime(value)
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(UTC).replace(tzinfo=None)

    def process_result_value(self, value: dt.datetime | None, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
