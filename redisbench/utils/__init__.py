"""Utilities for redisbench."""

from .logging import setup_logging, get_logger, LoggerMixin
from .latency_recorder import LatencySnapshot, percentile, summarize_samples

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggerMixin",
    "LatencySnapshot",
    "percentile",
    "summarize_samples",
]
