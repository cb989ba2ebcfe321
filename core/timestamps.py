"""Lecture des horodatages ISO 8601 renvoyés par le service de stock."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

import pandas as pd

# pandas resolves "now" and "today" even with format="ISO8601": require a full date first.
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


def parse_timestamp(value: Any) -> datetime | None:
    """Return an aware UTC datetime, or None when the value cannot be read.

    Naive values are taken as UTC. Numbers are epoch milliseconds, the way
    the console front-end exchanges them. Strings must be ISO 8601.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    else:
        if isinstance(value, str) and not _ISO_DATE.match(value.strip()):
            return None
        try:
            if isinstance(value, (int, float)):
                ts = pd.to_datetime(value, unit="ms", errors="coerce", utc=True)
            else:
                ts = pd.to_datetime(str(value).strip(), format="ISO8601", errors="coerce", utc=True)
        except (TypeError, ValueError, OverflowError):
            return None
        if ts is None or pd.isna(ts):
            return None
        dt = ts.to_pydatetime()

    if pd.isna(dt):
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_transport_timestamp(value: datetime) -> str:
    """Serialize an instant the way the remote service expects it (naive UTC, seconds)."""

    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


__all__ = ["parse_timestamp", "format_transport_timestamp"]
