from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


MARKER_TS_FORMAT = "%Y-%m-%d-%H:%M:%S"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def marker_timestamp(now: Optional[datetime] = None) -> str:
    """Local wall-clock stamp used on PROMPT markers (no spaces)."""
    dt = now or datetime.now()
    return dt.strftime(MARKER_TS_FORMAT)
