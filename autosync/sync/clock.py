"""Time source for the reconciliation loop."""

import time
from datetime import datetime, timezone


class Clock:
    """Wall-clock time and blocking sleep, swappable for tests."""

    def now(self) -> datetime:
        raise NotImplementedError

    def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    """The real clock: timezone-aware UTC time and time.sleep."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)
