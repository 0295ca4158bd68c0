"""Master/worker coordination of a multi-node benchmark run.

Every node runs the same phases locally. Worker nodes settle their result for
each phase with the master (the first address of the peer set); the master
blocks until every worker settled, then merges all results, its own included,
into one summary per phase.
"""

import threading
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import ConfigError, ProtocolViolation
from .results import PHASES, NodeResult, Summary, merge_results
from ..api.master_api import MasterAPI, MasterServer, health_payload
from ..api.master_client import MasterClient
from ..utils.logging import LoggerMixin


class NodeRole(str, Enum):
    """Role of this process in a run."""
    STANDALONE = "standalone"
    MASTER = "master"
    WORKER = "worker"


def resolve_role(peers: Sequence[str], node_addr: Optional[str]) -> Tuple[NodeRole, int]:
    """Role and 1-based order of ``node_addr`` within the peer set."""
    if not peers:
        return NodeRole.STANDALONE, 1
    if node_addr not in peers:
        raise ConfigError(f"node address {node_addr} is not in peer set {list(peers)}")
    order = list(peers).index(node_addr) + 1
    return (NodeRole.MASTER if order == 1 else NodeRole.WORKER), order


def addr_port(addr: str) -> int:
    _, _, port = addr.rpartition(':')
    if not port.isdigit():
        raise ConfigError(f"address must be host:port, got {addr}")
    return int(port)


class SettlementBarrier:
    """Collects the settle calls of one phase on the master.

    The count of received results and the comparison with the expected count
    happen under one condition lock; waiters are released once every expected
    worker settled.
    """

    def __init__(self, phase: str, expected_orders: Iterable[int]):
        self.phase = phase
        self._expected = frozenset(expected_orders)
        self._results: Dict[int, NodeResult] = {}
        self._condition = threading.Condition()
        self._closed = False

    @property
    def expected_count(self) -> int:
        return len(self._expected)

    def _all_settled(self) -> bool:
        return len(self._results) == len(self._expected)

    def settle(self, result: NodeResult) -> None:
        with self._condition:
            if self._closed:
                raise ProtocolViolation(
                    f"{self.phase} phase is already summarized, late settle from node {result.order}"
                )
            if result.order not in self._expected:
                raise ProtocolViolation(
                    f"node {result.order} is not a worker of this run "
                    f"(expected one of {sorted(self._expected)})"
                )
            if result.order in self._results:
                raise ProtocolViolation(f"node {result.order} already settled the {self.phase} phase")
            self._results[result.order] = result
            if self._all_settled():
                self._condition.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every worker settled; False if the timeout expired first."""
        with self._condition:
            return self._condition.wait_for(self._all_settled, timeout=timeout)

    def close(self) -> Tuple[List[NodeResult], List[int]]:
        """Stop accepting settles; return the received results and the missing orders."""
        with self._condition:
            self._closed = True
            results = list(self._results.values())
            missing = sorted(self._expected - set(self._results))
        return results, missing

    def status(self) -> Dict[str, object]:
        with self._condition:
            return {
                'phase': self.phase,
                'expected': sorted(self._expected),
                'received': sorted(self._results),
                'complete': self._all_settled(),
                'closed': self._closed,
            }


class NodeCoordinator(LoggerMixin):
    """Decides this node's role and runs the settle/aggregate protocol."""

    def __init__(
        self,
        peers: Sequence[str] = (),
        node_addr: Optional[str] = None,
        settle_timeout: float = 0,
        bind_host: str = "0.0.0.0",
        master_wait_timeout: float = 30.0,
        client: Optional[MasterClient] = None,
        phases: Sequence[str] = PHASES
    ):
        super().__init__()
        self.peers = list(peers)
        self.node_addr = node_addr
        self.role, self.order = resolve_role(self.peers, node_addr)
        self.settle_timeout = settle_timeout
        self.bind_host = bind_host
        self.master_wait_timeout = master_wait_timeout

        self._client = client
        self._server: Optional[MasterServer] = None
        self._reported: Dict[str, NodeResult] = {}
        self._barriers: Dict[str, SettlementBarrier] = {}
        if self.role is NodeRole.MASTER:
            worker_orders = range(2, len(self.peers) + 1)
            self._barriers = {phase: SettlementBarrier(phase, worker_orders) for phase in phases}

    @property
    def master_addr(self) -> Optional[str]:
        return self.peers[0] if self.peers else None

    @property
    def rpc_port(self) -> Optional[int]:
        return self._server.port if self._server else None

    def start(self) -> None:
        """Serve the settle endpoint (master) or wait for the master (worker)."""
        if self.role is NodeRole.MASTER:
            api = MasterAPI(self)
            self._server = MasterServer(api.app, self.bind_host, addr_port(self.node_addr))
            self._server.start()
            self.logger.info(f"Node {self.order}/{len(self.peers)} is master, expecting "
                             f"{len(self.peers) - 1} worker(s)")
        elif self.role is NodeRole.WORKER:
            if self._client is None:
                self._client = MasterClient(self.master_addr)
            self._client.wait_until_ready(self.master_wait_timeout)
            self.logger.info(f"Node {self.order}/{len(self.peers)} is worker of master {self.master_addr}")

    def stop(self) -> None:
        if self._server is not None:
            self._server.stop()
            self._server = None
        if self._client is not None:
            self._client.close()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def _barrier(self, phase: str) -> SettlementBarrier:
        if self.role is not NodeRole.MASTER:
            raise ProtocolViolation(f"node {self.order} is not the master")
        barrier = self._barriers.get(phase)
        if barrier is None:
            raise ProtocolViolation(f"unknown phase: {phase}")
        return barrier

    def settle(self, phase: str, result: NodeResult) -> None:
        """Accept a worker's result for a phase (master side of the protocol).

        Raises:
            ProtocolViolation: unknown phase or node, duplicate or late settle
        """
        self._barrier(phase).settle(result)
        self.logger.info(
            f"Node {result.order} settled {phase}: {result.total_operations} ops "
            f"in {result.duration_seconds:.3f}s"
        )

    def report(self, phase: str, result: NodeResult) -> Optional[Summary]:
        """Report this node's result for a phase.

        Returns:
            The merged summary on the master or a standalone node, None on a worker

        Raises:
            SettlementError: a worker could not settle with the master
        """
        if result.order != self.order:
            raise ValueError(f"result order {result.order} does not match node order {self.order}")
        if phase in self._reported:
            raise ProtocolViolation(f"{phase} phase already reported by node {self.order}")
        self._reported[phase] = result

        if self.role is NodeRole.STANDALONE:
            return merge_results(phase, [result])

        if self.role is NodeRole.WORKER:
            self._client.settle(phase, result)
            self.logger.info(f"* See {phase} summary info on node 1 ({self.master_addr})")
            return None

        return self._await_summary(phase, result)

    def _await_summary(self, phase: str, own_result: NodeResult) -> Summary:
        barrier = self._barrier(phase)
        timeout = self.settle_timeout if self.settle_timeout > 0 else None

        self.logger.info(f"Waiting for {barrier.expected_count} worker(s) to settle {phase}...")
        if not barrier.wait(timeout):
            self.logger.warning(f"Settlement of {phase} timed out after {self.settle_timeout}s")

        results, missing = barrier.close()
        summary = merge_results(phase, [own_result] + results, missing)
        if summary.partial:
            self.logger.warning(
                f"{phase} summary is partial, nodes {summary.missing_nodes} never settled "
                f"and contribute zero operations"
            )
        return summary

    def phase_status(self, phase: str) -> Dict[str, object]:
        status = self._barrier(phase).status()
        status['master_reported'] = phase in self._reported
        return status

    def health(self) -> Dict[str, object]:
        return health_payload(self.role.value, self.order, self.peers)
