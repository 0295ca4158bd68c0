"""End-to-end benchmark run on one node."""

import os
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from rich.filesize import decimal

from .config import BenchConfig
from .coordinator import NodeCoordinator, NodeRole
from .driver import LoadDriver, OperationKind
from .results import READ_PHASE, WRITE_PHASE, NodeResult, PhaseResult, Summary
from .sink import SampleSink, read_samples
from ..stores.factory import StoreFactory
from ..utils.latency_recorder import LatencyRecorder, LatencySnapshot, summarize_samples
from ..utils.logging import LoggerMixin


@dataclass
class PhaseReport:
    """Everything this node knows about one phase after the run."""
    phase: str
    node_result: NodeResult
    sample_log: Path
    latency: LatencySnapshot
    summary: Optional[Summary] = None


@dataclass
class RunReport:
    """Outcome of a run on this node."""
    role: str
    order: int
    master_addr: Optional[str] = None
    phases: Dict[str, PhaseReport] = field(default_factory=dict)


def sample_log_path(sample_dir: str, phase: str, now: Optional[datetime] = None) -> Path:
    """``<sample_dir>/<phase>_<timestamp>_<pid>_<suffix>.bin``, one file per node-phase and run.

    The random suffix keeps runs of the same process apart even within one
    clock tick; the sink refuses to open an existing log.
    """
    stamp = (now or datetime.now()).strftime('%Y%m%dT%H%M%S_%f')
    return Path(sample_dir) / f"{phase}_{stamp}_{os.getpid()}_{uuid.uuid4().hex[:8]}.bin"


def node_key_prefix(key_prefix: str, role: NodeRole, order: int) -> str:
    """Key prefix of this node.

    Nodes of a multi-node run write disjoint keys, so the cleanup phase of a
    fast node never deletes keys a slower node is still reading.
    """
    if role is NodeRole.STANDALONE:
        return key_prefix
    return f"{key_prefix}.n{order}"


class BenchmarkRunner(LoggerMixin):
    """Runs the write phase, the read phase, settlement and cleanup."""

    def __init__(
        self,
        config: BenchConfig,
        store_factory: Optional[StoreFactory] = None,
        coordinator: Optional[NodeCoordinator] = None
    ):
        super().__init__()
        self.config = config
        self.store_factory = store_factory or StoreFactory(config)
        self._coordinator = coordinator
        self.driver = LoadDriver(
            concurrency=config.client_num,
            operations=config.test_times,
            payload_size=config.data_size,
            key_prefix=config.key_prefix
        )

    def _create_coordinator(self) -> NodeCoordinator:
        return NodeCoordinator(
            peers=self.config.peers,
            node_addr=self.config.node_addr,
            settle_timeout=self.config.settle_timeout,
            bind_host=self.config.rpc_bind_host,
            master_wait_timeout=self.config.master_wait_timeout
        )

    def run(self) -> RunReport:
        """Run the benchmark on this node.

        Raises:
            BenchmarkError: any fatal condition; nothing is reported in that case
        """
        self.config.validate_topology()
        coordinator = self._coordinator or self._create_coordinator()

        with coordinator:
            self._log_plan()
            report = RunReport(
                role=coordinator.role.value,
                order=coordinator.order,
                master_addr=coordinator.master_addr
            )
            self.driver.key_prefix = node_key_prefix(
                self.config.key_prefix, coordinator.role, coordinator.order
            )

            write_store = self.store_factory.create_write_store()
            stores = [write_store]
            try:
                write_log = sample_log_path(self.config.sample_dir, WRITE_PHASE)
                self.logger.info("Testing Write...")
                write_result = self._run_measured_phase(OperationKind.WRITE, [write_store], write_log)

                if self.config.wait_time > 0:
                    self.logger.info(f"Waiting {self.config.wait_time} seconds before testing read...")
                    time.sleep(self.config.wait_time)

                read_stores = self.store_factory.create_read_stores()
                stores.extend(read_stores)
                read_log = sample_log_path(self.config.sample_dir, READ_PHASE)
                self.logger.info("Testing Read...")
                read_result = self._run_measured_phase(OperationKind.READ, read_stores, read_log)

                for phase, phase_result, log_path in (
                    (WRITE_PHASE, write_result, write_log),
                    (READ_PHASE, read_result, read_log),
                ):
                    report.phases[phase] = self._report_phase(coordinator, phase, phase_result, log_path)

                if self.config.cleanup_enabled:
                    self.logger.debug("Deleting testing data...")
                    self.driver.run_phase(OperationKind.DELETE, [write_store])
            finally:
                for store in stores:
                    store.close()

        self.logger.debug("Over")
        return report

    def _run_measured_phase(self, kind: OperationKind, stores: List, log_path: Path) -> PhaseResult:
        with SampleSink(log_path) as sink:
            return self.driver.run_phase(kind, stores, sink)

    def _report_phase(
        self,
        coordinator: NodeCoordinator,
        phase: str,
        phase_result: PhaseResult,
        log_path: Path
    ) -> PhaseReport:
        samples = read_samples(log_path)
        latency = summarize_samples(samples)
        self.logger.info(f"{phase.capitalize()} percentile - {latency.describe()}")

        recorder = LatencyRecorder()
        recorder.record_many(samples)
        node_result = NodeResult.from_phase(coordinator.order, phase_result, recorder.export_histogram())

        summary = coordinator.report(phase, node_result)
        if summary is not None:
            self._log_summary(coordinator.role, summary)

        return PhaseReport(
            phase=phase,
            node_result=node_result,
            sample_log=log_path,
            latency=latency,
            summary=summary
        )

    def _log_summary(self, role: NodeRole, summary: Summary) -> None:
        if role is NodeRole.STANDALONE:
            self.logger.info(
                f"* {summary.phase.capitalize()} Result times={summary.total_operations} "
                f"duration={summary.duration_seconds:.3f}s tps={summary.throughput_per_second}"
            )
            return

        partial = " (partial)" if summary.partial else ""
        self.logger.info(
            f"* {summary.phase.capitalize()} Summary{partial} nodes={summary.node_count} "
            f"times={summary.total_operations} duration={summary.duration_seconds:.3f}s "
            f"tps={summary.throughput_per_second}"
        )
        if summary.latency is not None:
            self.logger.info(f"* {summary.phase.capitalize()} cluster percentile - {summary.latency.describe()}")

    def _log_plan(self) -> None:
        config = self.config
        self.logger.info(f"Redis addr={','.join(config.redis_addrs)} backend={config.backend}")
        self.logger.info(
            f"Config clientNum={config.client_num} testTimes={config.test_times} "
            f"dataSize={decimal(config.data_size)}"
        )
        self.logger.info(f"Total times={config.total_operations} size={decimal(config.total_bytes)}")
