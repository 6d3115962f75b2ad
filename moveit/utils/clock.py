"""Timestamps and time-ordered identifiers for stored records."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone

_ID_LOCK = threading.Lock()
_last_id = 0


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> int:
    """Return a unique, strictly increasing id derived from the wall clock.

    Ids are microseconds since the epoch, bumped by one whenever two ids are
    requested within the same microsecond.
    """

    global _last_id
    with _ID_LOCK:
        candidate = time.time_ns() // 1000
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
        return candidate
