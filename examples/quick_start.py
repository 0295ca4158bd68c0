#!/usr/bin/env python3
"""Quick start example for redisbench.

Runs a small standalone benchmark. Pass ``--redis`` to target a Redis server
on localhost:6379 instead of the in-process memory store.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from redisbench.core.config import BenchConfig
from redisbench.core.runner import BenchmarkRunner
from redisbench.utils.logging import setup_logging


def run_quick_benchmark(use_redis: bool) -> None:
    """Run a quick benchmark example."""

    setup_logging(level="INFO", component="example")

    config = BenchConfig(
        redisAddrs=["127.0.0.1:6379"],
        backend="redis" if use_redis else "memory",
        clientNum=20,
        testTimes=200,  # Low count for a quick demo
        dataSize=256,
        sampleDir="temp"
    )

    report = BenchmarkRunner(config).run()

    for phase, phase_report in report.phases.items():
        summary = phase_report.summary
        print(f"{phase}: {summary.total_operations} ops, "
              f"{summary.throughput_per_second} ops/s, "
              f"p99 {phase_report.latency.p99_ms:.3f} ms")


if __name__ == '__main__':
    run_quick_benchmark(use_redis='--redis' in sys.argv[1:])
