"""Test master/worker coordination."""

import threading
import time

import pytest

from redisbench.core.coordinator import (
    NodeCoordinator,
    NodeRole,
    SettlementBarrier,
    addr_port,
    resolve_role
)
from redisbench.core.errors import ConfigError, ProtocolViolation
from redisbench.core.results import NodeResult


PEERS = ["10.0.0.11:7070", "10.0.0.12:7070", "10.0.0.13:7070"]


def node_result(order, total=100, start=0.0, end=1.0):
    return NodeResult(
        order=order,
        total_operations=total,
        window_start=start,
        window_end=end,
        duration_seconds=end - start
    )


class FakeMasterClient:
    """Records settle calls instead of sending them."""

    def __init__(self):
        self.settled = []
        self.ready_checks = []
        self.closed = False

    def wait_until_ready(self, deadline_seconds):
        self.ready_checks.append(deadline_seconds)
        return {'status': 'healthy'}

    def settle(self, phase, result):
        self.settled.append((phase, result))

    def close(self):
        self.closed = True


class TestResolveRole:
    """Test role assignment."""

    def test_standalone(self):
        """Test that an empty peer set runs standalone."""
        assert resolve_role([], None) == (NodeRole.STANDALONE, 1)

    def test_master_and_workers(self):
        """Test that the first peer is master and order follows the peer list."""
        assert resolve_role(PEERS, PEERS[0]) == (NodeRole.MASTER, 1)
        assert resolve_role(PEERS, PEERS[1]) == (NodeRole.WORKER, 2)
        assert resolve_role(PEERS, PEERS[2]) == (NodeRole.WORKER, 3)

    def test_unknown_node(self):
        """Test a node outside the peer set."""
        with pytest.raises(ConfigError):
            resolve_role(PEERS, "10.0.0.99:7070")

    def test_addr_port(self):
        """Test port extraction."""
        assert addr_port("10.0.0.11:7070") == 7070

        with pytest.raises(ConfigError):
            addr_port("10.0.0.11")


class TestSettlementBarrier:
    """Test the per-phase settlement barrier."""

    def test_settle_all(self):
        """Test that the barrier opens once every worker settled."""
        barrier = SettlementBarrier("write", [2, 3])
        barrier.settle(node_result(3))
        assert barrier.wait(timeout=0.01) is False

        barrier.settle(node_result(2))
        assert barrier.wait(timeout=0.01) is True

        results, missing = barrier.close()
        assert sorted(r.order for r in results) == [2, 3]
        assert missing == []

    def test_no_workers(self):
        """Test a master without workers never waits."""
        barrier = SettlementBarrier("write", [])

        assert barrier.wait(timeout=0) is True
        assert barrier.expected_count == 0

    def test_duplicate_settle(self):
        """Test that a node settles a phase at most once."""
        barrier = SettlementBarrier("write", [2, 3])
        barrier.settle(node_result(2))

        with pytest.raises(ProtocolViolation, match="already settled"):
            barrier.settle(node_result(2, total=5))

    def test_unknown_order(self):
        """Test that only expected workers may settle."""
        barrier = SettlementBarrier("write", [2, 3])

        with pytest.raises(ProtocolViolation):
            barrier.settle(node_result(1))

        with pytest.raises(ProtocolViolation):
            barrier.settle(node_result(4))

    def test_late_settle(self):
        """Test that a closed barrier rejects settles."""
        barrier = SettlementBarrier("read", [2, 3])
        barrier.settle(node_result(2))

        results, missing = barrier.close()
        assert missing == [3]

        with pytest.raises(ProtocolViolation, match="late settle"):
            barrier.settle(node_result(3))

    def test_status(self):
        """Test progress reporting."""
        barrier = SettlementBarrier("read", [2, 3])
        barrier.settle(node_result(3))

        status = barrier.status()
        assert status['expected'] == [2, 3]
        assert status['received'] == [3]
        assert status['complete'] is False
        assert status['closed'] is False

    def test_concurrent_settles(self):
        """Test many workers settling at the same time."""
        orders = list(range(2, 34))
        barrier = SettlementBarrier("write", orders)

        threads = [threading.Thread(target=barrier.settle, args=(node_result(o),)) for o in orders]
        for thread in threads:
            thread.start()

        assert barrier.wait(timeout=5) is True
        for thread in threads:
            thread.join()
        assert barrier.status()['received'] == orders


class TestStandaloneCoordinator:
    """Test a single node run."""

    def test_report_returns_own_summary(self):
        """Test that a standalone node summarizes its own result."""
        with NodeCoordinator() as coordinator:
            assert coordinator.role is NodeRole.STANDALONE
            assert coordinator.master_addr is None

            summary = coordinator.report("write", node_result(1, total=300, end=1.5))

        assert summary.total_operations == 300
        assert summary.throughput_per_second == 200
        assert summary.node_count == 1
        assert summary.partial is False

    def test_report_twice(self):
        """Test that a phase is reported once."""
        coordinator = NodeCoordinator()
        coordinator.report("write", node_result(1))

        with pytest.raises(ProtocolViolation):
            coordinator.report("write", node_result(1))

    def test_order_mismatch(self):
        """Test that a node reports only its own result."""
        coordinator = NodeCoordinator()

        with pytest.raises(ValueError):
            coordinator.report("write", node_result(2))

    def test_standalone_rejects_settles(self):
        """Test that only the master accepts settles."""
        coordinator = NodeCoordinator()

        with pytest.raises(ProtocolViolation, match="not the master"):
            coordinator.settle("write", node_result(2))


class TestMasterCoordinator:
    """Test the master side of the protocol without the HTTP layer."""

    def test_master_waits_for_workers(self):
        """Test that the master summary includes every worker."""
        coordinator = NodeCoordinator(peers=PEERS, node_addr=PEERS[0])
        assert coordinator.role is NodeRole.MASTER

        def settle_workers():
            time.sleep(0.05)
            coordinator.settle("write", node_result(3, total=1500, start=0.5, end=2.5))
            coordinator.settle("write", node_result(2, total=1000, start=0.2, end=2.0))

        worker = threading.Thread(target=settle_workers)
        worker.start()
        summary = coordinator.report("write", node_result(1, total=500, start=0.0, end=2.0))
        worker.join()

        assert summary.total_operations == 3000
        assert summary.duration_seconds == 2.5
        assert summary.throughput_per_second == 1200
        assert [r.order for r in summary.node_results] == [1, 2, 3]
        assert summary.partial is False

    def test_workers_settle_before_master_reports(self):
        """Test that early settles are kept until the master reports."""
        coordinator = NodeCoordinator(peers=PEERS, node_addr=PEERS[0])
        coordinator.settle("read", node_result(2))
        coordinator.settle("read", node_result(3))

        summary = coordinator.report("read", node_result(1))
        assert summary.total_operations == 300

    def test_settle_timeout_yields_partial_summary(self):
        """Test that missing workers are listed once the deadline passes."""
        coordinator = NodeCoordinator(peers=PEERS, node_addr=PEERS[0], settle_timeout=0.1)
        coordinator.settle("write", node_result(2))

        summary = coordinator.report("write", node_result(1))
        assert summary.partial is True
        assert summary.missing_nodes == [3]
        assert summary.total_operations == 200

        with pytest.raises(ProtocolViolation):
            coordinator.settle("write", node_result(3))

    def test_unknown_phase(self):
        """Test settles for a phase that does not exist."""
        coordinator = NodeCoordinator(peers=PEERS, node_addr=PEERS[0])

        with pytest.raises(ProtocolViolation, match="unknown phase"):
            coordinator.settle("delete", node_result(2))

    def test_phases_are_independent(self):
        """Test that a write settle does not count for read."""
        coordinator = NodeCoordinator(peers=PEERS[:2], node_addr=PEERS[0])
        coordinator.settle("write", node_result(2))

        status = coordinator.phase_status("read")
        assert status['received'] == []
        assert coordinator.phase_status("write")['complete'] is True

    def test_health(self):
        """Test health information."""
        coordinator = NodeCoordinator(peers=PEERS, node_addr=PEERS[0])

        health = coordinator.health()
        assert health['role'] == "master"
        assert health['order'] == 1
        assert health['peers'] == PEERS


class TestWorkerCoordinator:
    """Test the worker side of the protocol."""

    def test_worker_settles_with_master(self):
        """Test that a worker ships its result and gets no summary."""
        client = FakeMasterClient()
        coordinator = NodeCoordinator(
            peers=PEERS,
            node_addr=PEERS[1],
            master_wait_timeout=5,
            client=client
        )

        with coordinator:
            assert coordinator.role is NodeRole.WORKER
            assert coordinator.order == 2
            assert coordinator.master_addr == PEERS[0]
            assert client.ready_checks == [5]

            result = node_result(2)
            assert coordinator.report("write", result) is None

        assert client.settled == [("write", result)]
        assert client.closed is True

    def test_worker_rejects_settles(self):
        """Test that a worker is not a settle target."""
        coordinator = NodeCoordinator(peers=PEERS, node_addr=PEERS[2], client=FakeMasterClient())

        with pytest.raises(ProtocolViolation):
            coordinator.settle("write", node_result(3))
