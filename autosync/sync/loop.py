"""Reconciliation loop keeping the working copy on the remote branch tip."""

import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from ..errors import AutoSyncError, ErrorHandler, ErrorResponse, error_handler
from .backend import VersionControlBackend
from .clock import Clock, SystemClock
from .comparator import ComparisonResult, RevisionComparator
from .performance_logger import PerformanceLogger, get_performance_logger
from .repository import RepositoryLocation
from .state import SyncState, TickOutcome

DEFAULT_POLL_INTERVAL = 20.0
DEFAULT_FAILURE_ALERT_THRESHOLD = 5


class ReconciliationLoop:
    """
    Polls the comparator on a fixed cadence and fast-forwards on divergence.

    States are ``InSync`` and ``Behind``; the loop starts optimistically in
    ``InSync`` and the first tick corrects it. A mismatch runs the update
    action exactly once for that tick. A successful update leaves the loop
    ``Behind`` until the next tick's comparison confirms the match.

    Every per-tick failure is reported through the error handler and
    contained; the loop itself never raises out of ``run()`` except for
    BaseException such as KeyboardInterrupt.
    """

    def __init__(
        self,
        location: RepositoryLocation,
        backend: VersionControlBackend,
        comparator: Optional[RevisionComparator] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        clock: Optional[Clock] = None,
        failure_alert_threshold: int = DEFAULT_FAILURE_ALERT_THRESHOLD,
        reporter: Optional[ErrorHandler] = None,
        perf_logger: Optional[PerformanceLogger] = None
    ):
        """
        Initialize the loop.

        Args:
            location: Working copy and remote branch to keep in sync
            backend: Backend performing the fetch and fast-forward
            comparator: Comparator to query; built on backend when omitted
            poll_interval: Seconds slept between ticks
            clock: Time source; SystemClock when omitted
            failure_alert_threshold: Consecutive failed ticks before escalation
            reporter: Error handler used to report contained failures
            perf_logger: Performance logger timing the update action
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if failure_alert_threshold <= 0:
            raise ValueError("failure_alert_threshold must be positive")

        self.location = location
        self.backend = backend
        self.perf_logger = perf_logger or get_performance_logger()
        self.comparator = comparator or RevisionComparator(backend, perf_logger=self.perf_logger)
        self.poll_interval = poll_interval
        self.clock = clock or SystemClock()
        self.failure_alert_threshold = failure_alert_threshold
        self.reporter = reporter or error_handler
        self.logger = logging.getLogger('autosync.sync.loop')

        self.state = SyncState.IN_SYNC
        self.last_divergence: datetime = self.clock.now()
        self.pending_verification = False
        self.consecutive_failures = 0
        self.tick_count = 0
        self.last_error_code: Optional[str] = None
        self.last_error: Optional[ErrorResponse] = None

    def run(self, max_ticks: Optional[int] = None) -> None:
        """
        Tick forever, or max_ticks times, sleeping between ticks.

        There is no sleep before the first tick.
        """
        self.logger.info(
            f"🔄 Watching {self.location.path} against "
            f"{self.location.redact(self.location.remote_url)} ({self.location.branch}); "
            f"checking every {self.poll_interval:g} seconds"
        )

        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            if ticks > 0:
                self.clock.sleep(self.poll_interval)
            try:
                self.tick()
            except Exception as e:
                # Contain anything a backend leaks
                self._contain(e, "tick", exc_info=True)
            ticks += 1

    def tick(self) -> TickOutcome:
        """Run one compare-decide-act sequence and return what happened."""
        self.tick_count += 1

        try:
            comparison = self.comparator.compare(self.location)
        except AutoSyncError as e:
            return self._contain(e, "compare")

        if comparison.matches:
            return self._handle_match(comparison)
        return self._handle_mismatch(comparison)

    def elapsed_since_divergence(self) -> timedelta:
        """Time since the last transition into Behind, never negative."""
        return max(self.clock.now() - self.last_divergence, timedelta(0))

    def status(self) -> Dict[str, Any]:
        """Snapshot of the loop's bookkeeping for logging or diagnostics."""
        return {
            "state": self.state.value,
            "pending_verification": self.pending_verification,
            "last_divergence": self.last_divergence.isoformat(),
            "seconds_since_divergence": int(self.elapsed_since_divergence().total_seconds()),
            "ticks": self.tick_count,
            "consecutive_failures": self.consecutive_failures,
            "last_error_code": self.last_error_code,
            "last_error": self.last_error.to_dict() if self.last_error else None
        }

    def _handle_match(self, comparison: ComparisonResult) -> TickOutcome:
        if self.state is SyncState.BEHIND:
            self.logger.info(f"✅ Update verified: local copy is at {comparison.local_id}")

        self.state = SyncState.IN_SYNC
        self.pending_verification = False
        self._record_success()

        elapsed = self.elapsed_since_divergence()
        self.logger.info(
            f"No new changes since {self.last_divergence:%Y-%m-%d %H:%M:%S}. "
            f"Elapsed time: {int(elapsed.total_seconds())} seconds."
        )
        return TickOutcome(
            tick=self.tick_count,
            state=self.state,
            comparison=comparison,
            elapsed_since_divergence=elapsed
        )

    def _handle_mismatch(self, comparison: ComparisonResult) -> TickOutcome:
        if self.state is SyncState.IN_SYNC:
            self.state = SyncState.BEHIND
            self._mark_divergence()
            self.logger.info(
                f"New changes detected (local {comparison.local_id[:12]}, "
                f"remote {comparison.remote_id[:12]}). Pulling updates..."
            )
        else:
            self.logger.info(
                f"Still behind remote {comparison.remote_id[:12]}; retrying update"
            )

        try:
            with self.perf_logger.time_operation("update", context={"target": comparison.remote_id}):
                self.backend.fast_forward(self.location, comparison.remote_id)
        except AutoSyncError as e:
            self.pending_verification = False
            return self._contain(e, "update", comparison=comparison, update_attempted=True)

        self.pending_verification = True
        self._record_success()
        self.logger.info("Changes pulled successfully; verifying on next check")
        return TickOutcome(
            tick=self.tick_count,
            state=self.state,
            comparison=comparison,
            update_attempted=True,
            update_succeeded=True
        )

    def _mark_divergence(self) -> None:
        # Only ever moves forward, even if the wall clock steps back
        now = self.clock.now()
        if now > self.last_divergence:
            self.last_divergence = now

    def _record_success(self) -> None:
        if self.consecutive_failures:
            self.logger.info(f"Recovered after {self.consecutive_failures} failed check(s)")
        self.consecutive_failures = 0
        self.last_error_code = None
        self.last_error = None

    def _contain(
        self,
        error: Exception,
        operation: str,
        comparison: Optional[ComparisonResult] = None,
        update_attempted: bool = False,
        exc_info: bool = False
    ) -> TickOutcome:
        """Report a failed tick and keep the loop alive. State is left as is."""
        self.consecutive_failures += 1
        escalated = self.consecutive_failures >= self.failure_alert_threshold

        response = self.reporter.report(
            error,
            context={
                'operation': operation,
                'repository_path': str(self.location.path),
                'consecutive_failures': self.consecutive_failures
            },
            level=logging.ERROR if escalated or exc_info else logging.WARNING,
            exc_info=exc_info
        )
        self.last_error_code = response.error_code
        self.last_error = response

        if self.consecutive_failures % self.failure_alert_threshold == 0:
            self.logger.error(
                f"🚨 {self.consecutive_failures} consecutive checks failed; "
                f"state remains {self.state.value}"
            )

        return TickOutcome(
            tick=self.tick_count,
            state=self.state,
            comparison=comparison,
            update_attempted=update_attempted,
            error_code=response.error_code,
            consecutive_failures=self.consecutive_failures
        )
