"""Injectable clock so scheduling logic can be driven without real time passing."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in aware UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
