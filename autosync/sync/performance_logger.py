"""Performance logging utilities for comparator and update operations."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional, Any, Generator

SLOW_OPERATION_SECONDS = 10.0


@dataclass
class OperationStats:
    """Accumulated timings for one kind of operation."""
    operation: str
    count: int = 0
    failures: int = 0
    total_duration: float = 0.0
    max_duration: float = 0.0
    last_duration: float = 0.0

    @property
    def average_duration(self) -> float:
        return self.total_duration / self.count if self.count else 0.0

    def add(self, duration: float, success: bool) -> None:
        self.count += 1
        self.total_duration += duration
        self.max_duration = max(self.max_duration, duration)
        self.last_duration = duration
        if not success:
            self.failures += 1


class PerformanceLogger:
    """
    Performance logger for synchronization operations.

    Times each compare and update, warns about slow ones, and keeps
    per-operation totals for the summary logged at shutdown.
    """

    def __init__(
        self,
        logger_name: str = 'autosync.performance',
        slow_threshold: float = SLOW_OPERATION_SECONDS
    ):
        """
        Initialize performance logger.

        Args:
            logger_name: Name for the logger instance
            slow_threshold: Duration in seconds above which a warning is logged
        """
        self.logger = logging.getLogger(logger_name)
        self.slow_threshold = slow_threshold
        self._stats: Dict[str, OperationStats] = {}

    @contextmanager
    def time_operation(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        log_level: int = logging.DEBUG
    ) -> Generator[None, None, None]:
        """
        Context manager for timing operations.

        Failures are recorded and re-raised; reporting them is the caller's job.

        Args:
            operation: Name of the operation being timed
            context: Additional context information
            log_level: Logging level for performance messages
        """
        start_time = time.perf_counter()
        success = True
        try:
            yield
        except Exception:
            success = False
            raise
        finally:
            duration = time.perf_counter() - start_time
            self.record(operation, duration, success)

            status = "completed" if success else "failed"
            self.logger.log(log_level, f"⏱️ {operation} {status} in {duration:.3f}s")
            if context:
                context_str = ", ".join(f"{k}={v}" for k, v in context.items())
                self.logger.debug(f"📊 {operation} context: {context_str}")

    def record(self, operation: str, duration: float, success: bool = True) -> None:
        """Add one timing measurement and warn if it was slow."""
        stats = self._stats.setdefault(operation, OperationStats(operation=operation))
        stats.add(duration, success)

        if duration > self.slow_threshold:
            self.logger.warning(f"⚠️ Slow operation detected: '{operation}' took {duration:.3f}s")

    def get_stats(self, operation: str) -> Optional[OperationStats]:
        """Return accumulated stats for an operation, if any were recorded."""
        return self._stats.get(operation)

    def get_performance_summary(self) -> Dict[str, Any]:
        """
        Get a summary of performance metrics.

        Returns:
            Dictionary containing performance summary
        """
        if not self._stats:
            return {"total_operations": 0, "average_duration": 0.0}

        total_operations = sum(s.count for s in self._stats.values())
        total_duration = sum(s.total_duration for s in self._stats.values())
        failures = sum(s.failures for s in self._stats.values())
        slowest = max(self._stats.values(), key=lambda s: s.max_duration)

        return {
            "total_operations": total_operations,
            "total_duration": total_duration,
            "average_duration": total_duration / total_operations,
            "success_rate": (total_operations - failures) / total_operations,
            "operations": {
                name: {
                    "count": s.count,
                    "failures": s.failures,
                    "average_duration": s.average_duration,
                    "max_duration": s.max_duration
                }
                for name, s in self._stats.items()
            },
            "slowest_operation": {
                "name": slowest.operation,
                "duration": slowest.max_duration
            }
        }

    def log_performance_summary(self) -> None:
        """Log a summary of all performance metrics."""
        summary = self.get_performance_summary()

        if summary["total_operations"] == 0:
            self.logger.info("📊 No performance metrics available")
            return

        self.logger.info(
            f"📊 Performance Summary: {summary['total_operations']} operations, "
            f"avg {summary['average_duration']:.3f}s, "
            f"{summary['success_rate']:.1%} success rate"
        )

        slowest = summary["slowest_operation"]
        self.logger.info(
            f"🐌 Slowest operation: {slowest['name']} ({slowest['duration']:.3f}s)"
        )


# Global performance logger instance
_performance_logger: Optional[PerformanceLogger] = None


def get_performance_logger() -> PerformanceLogger:
    """Get or create the global performance logger instance."""
    global _performance_logger
    if _performance_logger is None:
        _performance_logger = PerformanceLogger()
    return _performance_logger
