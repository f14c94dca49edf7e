from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC.

    Server-side this stamps persisted messages; client-side it only stamps
    provisional pending entries.
    """

    def now(self) -> datetime:
        return utcnow()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
