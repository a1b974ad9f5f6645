"""
Structured logging system for merchant-dedupe.

Provides centralized logging with console and file outputs,
log levels, and metrics tracking for monitoring merge activity.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks merge metrics for the current process.
    """

    def __init__(
        self,
        name: str = "merchant_dedupe",
        level: str = "INFO",
        log_dir: Optional[Path] = None,
        enable_file: bool = True,
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
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()

        self._lock = threading.Lock()
        self.metrics = {
            "merges_attempted": 0,
            "merges_succeeded": 0,
            "merges_rejected": 0,
            "storage_failures": 0,
            "rejections_by_reason": {},
        }

        if enable_console:
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(getattr(logging, level.upper()))
            console_formatter = logging.Formatter(
                fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

        if enable_file:
            if log_dir is None:
                log_dir = Path("logs")
            log_dir.mkdir(parents=True, exist_ok=True)

            log_file = log_dir / f"merchant_dedupe_{datetime.now().strftime('%Y%m%d')}.log"
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
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_merge_attempt(self):
        with self._lock:
            self.metrics["merges_attempted"] += 1

    def record_merge_success(self):
        with self._lock:
            self.metrics["merges_succeeded"] += 1

    def record_merge_rejection(self, reason: str):
        """Record a merge refused by validation, bucketed by reason."""
        with self._lock:
            self.metrics["merges_rejected"] += 1
            by_reason = self.metrics["rejections_by_reason"]
            by_reason[reason] = by_reason.get(reason, 0) + 1

    def record_storage_failure(self):
        with self._lock:
            self.metrics["storage_failures"] += 1

    def get_metrics(self) -> dict:
        """Return a snapshot of current metrics, with the success rate filled in."""
        with self._lock:
            metrics_copy = dict(self.metrics)
            metrics_copy["rejections_by_reason"] = dict(self.metrics["rejections_by_reason"])

        attempts = metrics_copy["merges_attempted"]
        metrics_copy["success_rate"] = (
            round(metrics_copy["merges_succeeded"] / attempts, 3) if attempts else 0.0
        )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Merge Session Metrics ===")
        self.info(
            f"Merges: {metrics['merges_succeeded']}/{metrics['merges_attempted']} "
            f"({metrics['success_rate'] * 100:.1f}% success)"
        )
        self.info(f"Storage failures: {metrics['storage_failures']}")

        if metrics["rejections_by_reason"]:
            self.info("Rejections:")
            for reason, count in metrics["rejections_by_reason"].items():
                self.info(f"  {reason}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "merchant_dedupe",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    Level and log directory default to the values from the environment
    (see ``env.get_settings``).

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        from .env import get_settings, load_env

        load_env()
        settings = get_settings()
        kwargs.setdefault("log_dir", settings.log_dir)
        _global_logger = StructuredLogger(name=name, level=level or settings.log_level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
