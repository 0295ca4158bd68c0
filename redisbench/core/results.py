"""Per-node results and their cluster-wide aggregation."""

import json
from typing import Dict, List, Any, Iterable, Optional
from dataclasses import dataclass, field, asdict

from ..utils.latency_recorder import LatencySnapshot, merge_encoded_histograms


WRITE_PHASE = "write"
READ_PHASE = "read"
PHASES = (WRITE_PHASE, READ_PHASE)


@dataclass(frozen=True)
class PhaseResult:
    """Outcome of one LoadDriver phase on this node."""
    total_operations: int
    window_start: float
    window_end: float

    @property
    def duration_seconds(self) -> float:
        return self.window_end - self.window_start


@dataclass(frozen=True)
class NodeResult:
    """Result one node reports for one phase."""
    order: int
    total_operations: int
    window_start: float
    window_end: float
    duration_seconds: float
    # base64 HdrHistogram of the node's samples for the phase
    latency_histogram: Optional[str] = None

    @classmethod
    def from_phase(cls, order: int, phase_result: PhaseResult,
                   latency_histogram: Optional[str] = None) -> 'NodeResult':
        return cls(
            order=order,
            total_operations=phase_result.total_operations,
            window_start=phase_result.window_start,
            window_end=phase_result.window_end,
            duration_seconds=phase_result.duration_seconds,
            latency_histogram=latency_histogram
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def throughput_per_second(self) -> int:
        return calculate_tps(self.total_operations, self.duration_seconds)


@dataclass
class Summary:
    """Merged result of every participating node for one phase."""
    phase: str
    total_operations: int
    duration_seconds: float
    throughput_per_second: int
    window_start: float
    window_end: float
    node_results: List[NodeResult] = field(default_factory=list)
    missing_nodes: List[int] = field(default_factory=list)
    latency: Optional[LatencySnapshot] = None

    @property
    def partial(self) -> bool:
        """True when some expected nodes never settled."""
        return bool(self.missing_nodes)

    @property
    def node_count(self) -> int:
        return len(self.node_results)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['partial'] = self.partial
        data['node_count'] = self.node_count
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)


def calculate_tps(total_operations: int, duration_seconds: float) -> int:
    """Operations per second over a wall-clock span, rounded to an integer."""
    if duration_seconds <= 0:
        return 0
    return int(round(total_operations / duration_seconds))


def merge_results(
    phase: str,
    results: Iterable[NodeResult],
    missing_nodes: Iterable[int] = ()
) -> Summary:
    """Merge node results for a phase into one summary.

    Throughput is computed over the union of the node windows, from the
    earliest start to the latest end, since nodes run concurrently. The merge
    only uses sum, min and max, so the arrival order of results is irrelevant.
    Results are kept sorted by node order for reporting.
    """
    ordered = sorted(results, key=lambda r: r.order)
    if not ordered:
        raise ValueError(f"no node results to merge for phase {phase}")

    total = sum(r.total_operations for r in ordered)
    window_start = min(r.window_start for r in ordered)
    window_end = max(r.window_end for r in ordered)
    duration = window_end - window_start

    histograms = [r.latency_histogram for r in ordered if r.latency_histogram]
    latency = merge_encoded_histograms(histograms) if histograms else None

    return Summary(
        phase=phase,
        total_operations=total,
        duration_seconds=duration,
        throughput_per_second=calculate_tps(total, duration),
        window_start=window_start,
        window_end=window_end,
        node_results=ordered,
        missing_nodes=sorted(missing_nodes),
        latency=latency
    )
