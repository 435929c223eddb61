# Overview: Clock helpers; the engine's default clock and JSON timestamp format.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Server-side 'now' in UTC (naive, canonical).

    All stored timestamps (history, approvals, sessions) use this form.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serialize a stored timestamp as ISO-8601 with trailing 'Z', seconds precision.
    Naive values are treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")
