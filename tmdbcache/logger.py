"""
Structured logging system for tmdbcache.

Provides centralized logging with console and optional file output, plus
metrics tracking so each fetch run can end with a summary of what was
fetched, skipped and lost.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics for monitoring fetch runs.
    """

    def __init__(
        self,
        name: str = "tmdbcache",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = False,
        enable_console: bool = True,
    ):
        """
        Initialize the structured logger.

        Args:
            name: Logger name
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_dir: Directory for log files (default: logs/)
            enable_file: Write logs to file
            enable_console: Output logs to console
        """
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if enable_file else getattr(logging, level.upper()))
        self.logger.handlers.clear()  # Remove existing handlers
        self.logger.propagate = False

        # Metrics tracking
        self.metrics = {
            "api_calls": 0,
            "fetches_attempted": 0,
            "fetches_successful": 0,
            "fetches_failed": 0,
            "fetches_skipped": 0,
            "errors_by_type": {},
            "kind_success_rate": {},
        }

        # Console handler
        if enable_console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        # File handler
        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"tmdbcache_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)  # Always log everything to file
            file_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler.setFormatter(file_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str, **kwargs):
        """Log debug message with optional context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs):
        """Log info message with optional context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with optional context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with optional context."""
        self._log(logging.ERROR, message, kwargs)

    def critical(self, message: str, **kwargs):
        """Log critical message with optional context."""
        self._log(logging.CRITICAL, message, kwargs)

    def _log(self, level: int, message: str, context: dict):
        """Internal logging method with context."""
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_api_call(self):
        """Increment API call counter."""
        self.metrics["api_calls"] += 1

    def _kind_stats(self, kind: str) -> dict:
        return self.metrics["kind_success_rate"].setdefault(
            kind, {"attempts": 0, "successes": 0, "failures": 0, "skipped": 0}
        )

    def record_fetch_attempt(self, kind: str):
        """Record a fetch of a page or detail record that was not cached."""
        self.metrics["fetches_attempted"] += 1
        self._kind_stats(kind)["attempts"] += 1

    def record_fetch_success(self, kind: str):
        """Record a successful fetch."""
        self.metrics["fetches_successful"] += 1
        self._kind_stats(kind)["successes"] += 1

    def record_fetch_failure(self, kind: str, error_type: str):
        """Record a fetch that failed after all attempts."""
        self.metrics["fetches_failed"] += 1
        self._kind_stats(kind)["failures"] += 1

        # Track error types
        if error_type not in self.metrics["errors_by_type"]:
            self.metrics["errors_by_type"][error_type] = 0
        self.metrics["errors_by_type"][error_type] += 1

    def record_fetch_skipped(self, kind: str):
        """Record a cache hit."""
        self.metrics["fetches_skipped"] += 1
        self._kind_stats(kind)["skipped"] += 1

    def get_metrics(self) -> dict:
        """Return current metrics."""
        # Calculate success rates on a copy; self.metrics only holds counters
        metrics_copy = self.metrics.copy()
        metrics_copy["errors_by_type"] = dict(self.metrics["errors_by_type"])
        metrics_copy["kind_success_rate"] = {
            kind: dict(stats) for kind, stats in self.metrics["kind_success_rate"].items()
        }
        for kind, stats in metrics_copy["kind_success_rate"].items():
            if stats["attempts"] > 0:
                stats["success_rate"] = round(
                    stats["successes"] / stats["attempts"], 3
                )

        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        total_attempts = metrics["fetches_attempted"]
        total_successes = metrics["fetches_successful"]
        overall_rate = 0
        if total_attempts > 0:
            overall_rate = round(total_successes / total_attempts * 100, 1)

        self.info("=== Fetch Session Metrics ===")
        self.info(f"API Calls: {metrics['api_calls']}")
        self.info(f"Fetches: {total_successes}/{total_attempts} ({overall_rate}% success)")
        self.info(f"Cache hits: {metrics['fetches_skipped']}")

        if metrics["kind_success_rate"]:
            self.info("Success Rates:")
            for kind, stats in metrics["kind_success_rate"].items():
                rate = stats.get("success_rate", 0) * 100
                self.info(f"  {kind}: {stats['successes']}/{stats['attempts']} ({rate:.1f}%)")

        if metrics["errors_by_type"]:
            self.info("Error Types:")
            for error_type, count in metrics["errors_by_type"].items():
                self.info(f"  {error_type}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "tmdbcache",
    level: str = "INFO",
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (used by tests and by the CLI before reconfiguring)."""
    global _global_logger
    _global_logger = None
