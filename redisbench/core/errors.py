"""Exception hierarchy for redisbench.

Every fatal condition of a run is a ``BenchmarkError``; the CLI is the single
place that turns one into a non-zero exit.
"""

from typing import Optional


class BenchmarkError(Exception):
    """Base class for all benchmark failures."""


class ConfigError(BenchmarkError):
    """Invalid or inconsistent configuration."""


class OperationError(BenchmarkError):
    """A timed store operation failed."""

    def __init__(self, kind: str, key: str, cause: Optional[BaseException] = None):
        self.kind = kind
        self.key = key
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{kind} {key} failed{detail}")


class KeyNotFoundError(OperationError):
    """A read addressed a key the store does not hold."""

    def __init__(self, key: str):
        super().__init__("read", key)

    def __str__(self):
        return f"key not found: {self.key}"


class ConnectivityError(BenchmarkError):
    """An endpoint required by the run is unreachable."""


class SampleLogError(BenchmarkError):
    """Writing or reading a sample log failed."""


class ProtocolViolation(BenchmarkError):
    """A settle call the master must reject."""


class SettlementError(BenchmarkError):
    """A worker could not settle its result with the master."""
