"""
Structured logging for mentorgraph.

Provides centralized logging with console and optional file output,
plus metrics tracking for the live merge and recomputation loop.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional
from datetime import datetime
import json


class StructuredLogger:
    """
    Centralized logger with support for console and file outputs.
    Tracks metrics describing live stream health and recomputation.
    """

    def __init__(
        self,
        name: str = "mentorgraph",
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
        self.logger.setLevel(getattr(logging, level.upper()))
        self.logger.handlers.clear()

        self.metrics = {
            "fetches": 0,
            "fetch_failures": 0,
            "pushes_received": 0,
            "pushes_admitted": 0,
            "pushes_filtered": 0,
            "duplicates_ignored": 0,
            "items_skipped": 0,
            "skip_reasons": {},
            "channel_failures": 0,
            "recomputations": 0,
            "recompute_failures": 0,
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

            log_file = log_dir / f"mentorgraph_{datetime.now().strftime('%Y%m%d')}.log"
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

    def _log(self, level: int, message: str, context: dict):
        if context:
            message = f"{message} | Context: {json.dumps(context, default=str)}"
        self.logger.log(level, message)

    # Metric tracking methods

    def record_fetch(self, success: bool = True):
        """Record a full-collection fetch."""
        self.metrics["fetches"] += 1
        if not success:
            self.metrics["fetch_failures"] += 1

    def record_push(self, admitted: bool, duplicate: bool = False):
        """Record a pushed posting and whether it made it into the collection."""
        self.metrics["pushes_received"] += 1
        if duplicate:
            self.metrics["duplicates_ignored"] += 1
        elif admitted:
            self.metrics["pushes_admitted"] += 1
        else:
            self.metrics["pushes_filtered"] += 1

    def record_skipped_item(self, reason: str):
        """Record a malformed record that was skipped."""
        self.metrics["items_skipped"] += 1
        reasons = self.metrics["skip_reasons"]
        reasons[reason] = reasons.get(reason, 0) + 1

    def record_channel_failure(self):
        self.metrics["channel_failures"] += 1

    def record_recompute(self, success: bool = True):
        self.metrics["recomputations"] += 1
        if not success:
            self.metrics["recompute_failures"] += 1

    def get_metrics(self) -> dict:
        """Return a copy of current metrics with the push admission rate."""
        metrics_copy = dict(self.metrics)
        metrics_copy["skip_reasons"] = dict(self.metrics["skip_reasons"])
        received = metrics_copy["pushes_received"]
        if received > 0:
            metrics_copy["admission_rate"] = round(
                metrics_copy["pushes_admitted"] / received, 3
            )
        return metrics_copy

    def log_metrics_summary(self):
        """Log a summary of current metrics."""
        metrics = self.get_metrics()

        self.info("=== Viewing Session Metrics ===")
        self.info(f"Fetches: {metrics['fetches']} ({metrics['fetch_failures']} failed)")
        self.info(
            f"Pushes: {metrics['pushes_admitted']}/{metrics['pushes_received']} admitted, "
            f"{metrics['pushes_filtered']} filtered, {metrics['duplicates_ignored']} duplicates"
        )
        self.info(
            f"Recomputations: {metrics['recomputations']} "
            f"({metrics['recompute_failures']} fell back to last good)"
        )
        if metrics["channel_failures"]:
            self.info(f"Channel failures: {metrics['channel_failures']}")

        if metrics["skip_reasons"]:
            self.info("Skipped items:")
            for reason, count in metrics["skip_reasons"].items():
                self.info(f"  {reason}: {count}")


# Global logger instance
_global_logger: Optional[StructuredLogger] = None


def get_logger(
    name: str = "mentorgraph",
    level: Optional[str] = None,
    **kwargs
) -> StructuredLogger:
    """
    Get or create the global logger instance.

    File output is switched on when MENTORGRAPH_LOG_DIR is set.

    Args:
        name: Logger name
        level: Log level; defaults to MENTORGRAPH_LOG_LEVEL or INFO
        **kwargs: Additional arguments passed to StructuredLogger

    Returns:
        StructuredLogger instance
    """
    global _global_logger

    if _global_logger is None:
        level = level or os.getenv("MENTORGRAPH_LOG_LEVEL", "INFO")
        log_dir = os.getenv("MENTORGRAPH_LOG_DIR")
        if log_dir and "log_dir" not in kwargs:
            kwargs["log_dir"] = Path(log_dir)
            kwargs.setdefault("enable_file", True)
        _global_logger = StructuredLogger(name=name, level=level, **kwargs)

    return _global_logger


def reset_logger():
    """Reset the global logger (useful for testing)."""
    global _global_logger
    _global_logger = None
