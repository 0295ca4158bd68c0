"""Core components of redisbench."""

from .config import BenchConfig, ConfigLoader, StoreBackend
from .driver import LoadDriver, OperationKind
from .results import NodeResult, PhaseResult, Summary, merge_results
from .sink import SampleSink, read_samples

__all__ = [
    "BenchConfig",
    "ConfigLoader",
    "StoreBackend",
    "LoadDriver",
    "OperationKind",
    "NodeResult",
    "PhaseResult",
    "Summary",
    "merge_results",
    "SampleSink",
    "read_samples",
]
