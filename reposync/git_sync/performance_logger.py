"""Performance logging utilities for Git synchronization operations."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional, Any, Generator, Sequence


SLOW_COMMAND_SECONDS = 10.0


@dataclass
class PerformanceMetrics:
    """Performance metrics for a Git sync operation."""
    operation: str
    duration: float
    start_time: float
    end_time: float
    context: Optional[Dict[str, Any]] = None
    success: bool = True


class PerformanceLogger:
    """
    Performance logger for Git synchronization operations.

    Provides timing utilities and performance metrics collection
    for monitoring safe updates and individual git commands.
    """

    def __init__(self, logger_name: str = 'reposync.git_sync.performance'):
        """
        Initialize performance logger.

        Args:
            logger_name: Name for the logger instance
        """
        self.logger = logging.getLogger(logger_name)
        self._metrics: Dict[str, PerformanceMetrics] = {}

    @contextmanager
    def time_operation(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        log_level: int = logging.DEBUG
    ) -> Generator[None, None, None]:
        """
        Context manager for timing operations.

        Args:
            operation: Name of the operation being timed
            context: Additional context information
            log_level: Logging level for performance messages
        """
        start_time = time.time()
        self.logger.log(log_level, f"⏱️ Starting {operation}")

        success = True
        try:
            yield
        except Exception as e:
            success = False
            self.logger.error(f"❌ {operation} failed after {time.time() - start_time:.3f}s: {e}")
            raise
        finally:
            end_time = time.time()
            duration = end_time - start_time

            self._metrics[operation] = PerformanceMetrics(
                operation=operation,
                duration=duration,
                start_time=start_time,
                end_time=end_time,
                context=context,
                success=success
            )

            if success:
                self.logger.log(log_level, f"✅ {operation} completed in {duration:.3f}s")

                if context:
                    context_str = ", ".join(f"{k}={v}" for k, v in context.items())
                    self.logger.debug(f"📊 {operation} context: {context_str}")

    def log_git_command_performance(
        self,
        command: Sequence[str],
        duration: float,
        success: bool = True
    ) -> None:
        """
        Log performance of a single git command.

        Args:
            command: Argument list that was executed
            duration: Duration in seconds
            success: Whether the command exited with status 0
        """
        status_icon = "✅" if success else "❌"
        command_text = " ".join(command)

        self.logger.debug(f"{status_icon} Command '{command_text}' completed in {duration:.3f}s")

        if duration > SLOW_COMMAND_SECONDS:
            self.logger.warning(f"⚠️ Slow Git operation detected: '{command_text}' took {duration:.3f}s")

    def get_performance_summary(self) -> Dict[str, Any]:
        """
        Get a summary of performance metrics.

        Returns:
            Dictionary containing performance summary
        """
        if not self._metrics:
            return {"total_operations": 0, "average_duration": 0.0}

        metrics = list(self._metrics.values())
        total_operations = len(metrics)
        total_duration = sum(m.duration for m in metrics)
        successful_ops = sum(1 for m in metrics if m.success)
        slowest_op = max(metrics, key=lambda m: m.duration)

        return {
            "total_operations": total_operations,
            "total_duration": total_duration,
            "average_duration": total_duration / total_operations,
            "success_rate": successful_ops / total_operations,
            "slowest_operation": {
                "name": slowest_op.operation,
                "duration": slowest_op.duration
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
        self.logger.info(f"🐌 Slowest operation: {slowest['name']} ({slowest['duration']:.3f}s)")


# Global performance logger instance
_performance_logger: Optional[PerformanceLogger] = None


def get_performance_logger() -> PerformanceLogger:
    """Get or create the global performance logger instance."""
    global _performance_logger
    if _performance_logger is None:
        _performance_logger = PerformanceLogger()
    return _performance_logger
