"""Latency statistics: interpolated percentiles and HdrHistogram recording.

Per-node statistics are computed exactly from the raw samples read back from
the sample log. Cluster-wide statistics are approximated by merging the HDR
histograms each node ships with its settle call.
"""

from typing import Dict, Any, Iterable, List, Optional, Sequence
from dataclasses import dataclass
import numpy as np
from hdrh.histogram import HdrHistogram


# 1µs to 1 hour, in microseconds
HISTOGRAM_LOWEST_US = 1
HISTOGRAM_HIGHEST_US = 3_600_000_000
HISTOGRAM_SIGNIFICANT_FIGURES = 3

REPORTED_PERCENTILES = (90.0, 95.0, 99.0)


@dataclass
class LatencySnapshot:
    """Snapshot of latency statistics in milliseconds."""
    count: int
    min_ms: float
    max_ms: float
    p90_ms: float
    p95_ms: float
    p99_ms: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'count': self.count,
            'min_ms': self.min_ms,
            'max_ms': self.max_ms,
            'p90_ms': self.p90_ms,
            'p95_ms': self.p95_ms,
            'p99_ms': self.p99_ms,
        }

    def describe(self) -> str:
        return (
            f"p90: {self.p90_ms:.6f}, p95: {self.p95_ms:.6f}, p99: {self.p99_ms:.6f}, "
            f"min: {self.min_ms:.6f}, max: {self.max_ms:.6f}"
        )


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Linearly interpolated percentile of an ascending sequence.

    Args:
        sorted_values: Samples sorted in ascending order
        p: Percentile in the closed range [0, 100]

    Returns:
        The interpolated value at rank ``p / 100 * (n - 1)``
    """
    n = len(sorted_values)
    if n == 0:
        raise ValueError("percentile of an empty sample set")
    if not 0.0 <= p <= 100.0:
        raise ValueError(f"percentile must be within [0, 100], got {p}")

    rank = (p / 100.0) * (n - 1)
    floor = int(rank)
    fraction = rank - floor
    if floor + 1 < n:
        lower = float(sorted_values[floor])
        upper = float(sorted_values[floor + 1])
        return lower + fraction * (upper - lower)
    return float(sorted_values[floor])


def summarize_samples(samples: Iterable[float]) -> LatencySnapshot:
    """Sort the samples and compute p90/p95/p99, min and max."""
    values = np.sort(np.fromiter(samples, dtype=np.float64))
    if values.size == 0:
        raise ValueError("cannot summarize an empty sample set")

    p90, p95, p99 = (percentile(values, p) for p in REPORTED_PERCENTILES)
    return LatencySnapshot(
        count=int(values.size),
        min_ms=float(values[0]),
        max_ms=float(values[-1]),
        p90_ms=p90,
        p95_ms=p95,
        p99_ms=p99,
    )


class LatencyRecorder:
    """HdrHistogram-backed recorder used to ship latencies between nodes."""

    def __init__(self, histogram: Optional[HdrHistogram] = None):
        if histogram is None:
            histogram = HdrHistogram(
                HISTOGRAM_LOWEST_US,
                HISTOGRAM_HIGHEST_US,
                HISTOGRAM_SIGNIFICANT_FIGURES
            )
        self._histogram = histogram

    @property
    def count(self) -> int:
        return self._histogram.get_total_count()

    def record_latency(self, latency_ms: float) -> None:
        """Record a latency measurement in milliseconds.

        Values below the trackable range are clamped to 1µs; values above it
        are dropped by the histogram.
        """
        latency_us = max(HISTOGRAM_LOWEST_US, int(round(latency_ms * 1000)))
        self._histogram.record_value(latency_us)

    def record_many(self, samples: Iterable[float]) -> None:
        for latency_ms in samples:
            self.record_latency(latency_ms)

    def merge(self, other: 'LatencyRecorder') -> None:
        """Merge another recorder into this one."""
        if other.count:
            self._histogram.add(other._histogram)

    def export_histogram(self) -> Optional[str]:
        """Export the histogram as a base64 string, or None when empty."""
        if self.count == 0:
            return None
        return self._histogram.encode().decode('ascii')

    @classmethod
    def from_encoded(cls, encoded: str) -> 'LatencyRecorder':
        return cls(HdrHistogram.decode(encoded))

    def get_snapshot(self) -> Optional[LatencySnapshot]:
        """Get a snapshot of the recorded latencies, or None when empty."""
        if self.count == 0:
            return None

        p90, p95, p99 = (
            self._histogram.get_value_at_percentile(p) / 1000.0
            for p in REPORTED_PERCENTILES
        )
        return LatencySnapshot(
            count=self.count,
            min_ms=self._histogram.get_min_value() / 1000.0,
            max_ms=self._histogram.get_max_value() / 1000.0,
            p90_ms=p90,
            p95_ms=p95,
            p99_ms=p99,
        )


def merge_encoded_histograms(encoded: List[Optional[str]]) -> Optional[LatencySnapshot]:
    """Merge base64 histograms from several nodes into one snapshot."""
    merged = LatencyRecorder()
    for item in encoded:
        if item:
            merged.merge(LatencyRecorder.from_encoded(item))
    return merged.get_snapshot()
