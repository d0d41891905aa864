from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional


def to_iso(dt: datetime) -> str:
    """UTC with millisecond precision and a "Z" suffix; every timestamp the API emits has this form."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def epoch_ms_to_iso(value: Any) -> Optional[str]:
    """Millisecond epoch (Vercel `created`) -> "2024-05-01T10:00:00.000Z"."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return to_iso(datetime.fromtimestamp(value / 1000, tz=timezone.utc))


def parse_iso_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp as produced by GitHub or PostgREST.

    Naive values are taken as UTC. Returns None for anything unparsable.
    """
    if not isinstance(value, str) or not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
