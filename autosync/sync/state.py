"""Sync state and per-tick outcome records."""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .comparator import ComparisonResult


class SyncState(Enum):
    """Whether the working copy matched the remote on the latest query."""
    IN_SYNC = "in_sync"
    BEHIND = "behind"


@dataclass
class TickOutcome:
    """What happened during one reconciliation tick."""
    tick: int
    state: SyncState
    comparison: Optional["ComparisonResult"] = None
    update_attempted: bool = False
    update_succeeded: bool = False
    elapsed_since_divergence: Optional[timedelta] = None
    error_code: Optional[str] = None
    consecutive_failures: int = 0

    @property
    def succeeded(self) -> bool:
        """True when nothing failed during the tick."""
        return self.error_code is None
