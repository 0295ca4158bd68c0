"""Concurrent load generation and latency sampling."""

import random
import string
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .errors import OperationError
from .results import PhaseResult
from .sink import SampleSink
from ..utils.logging import LoggerMixin


DEFAULT_KEY_PREFIX = "benchmark-set"


class OperationKind(str, Enum):
    """Store operation a phase issues."""
    WRITE = "write"
    READ = "read"
    DELETE = "delete"


def make_key(prefix: str, worker_id: int, index: int) -> str:
    """Key for operation ``index`` of worker ``worker_id``; identical across phases."""
    return f"{prefix}.{worker_id}.{index}"


def random_payload(size: int, rng: Optional[random.Random] = None) -> str:
    """Random ASCII-letter payload of ``size`` characters."""
    rng = rng or random.Random()
    return ''.join(rng.choices(string.ascii_letters, k=size))


class LoadDriver(LoggerMixin):
    """Runs C concurrent workers, each issuing T sequential timed operations.

    A failed operation is fatal: the remaining workers stop after their
    current operation and :meth:`run_phase` re-raises the failure, so a phase
    either reports exactly ``C * T`` operations or nothing.
    """

    def __init__(
        self,
        concurrency: int,
        operations: int,
        payload_size: int = 1000,
        key_prefix: str = DEFAULT_KEY_PREFIX
    ):
        super().__init__()
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if operations < 1:
            raise ValueError(f"operations must be >= 1, got {operations}")
        if payload_size < 1:
            raise ValueError(f"payload_size must be >= 1, got {payload_size}")
        self.concurrency = concurrency
        self.operations = operations
        self.payload_size = payload_size
        self.key_prefix = key_prefix

    def run_phase(
        self,
        kind: OperationKind,
        stores: Sequence,
        sink: Optional[SampleSink] = None
    ) -> PhaseResult:
        """Run one phase and block until every worker finished.

        Args:
            kind: Operation every worker issues
            stores: Endpoints, worker ``i`` uses ``stores[i % len(stores)]``
            sink: Receives each worker's batch of latencies, if given

        Returns:
            Operation count and wall-clock window of the phase

        Raises:
            OperationError: a store operation failed
        """
        kind = OperationKind(kind)
        if not stores:
            raise ValueError("run_phase needs at least one store")

        abort = threading.Event()
        self.logger.debug(
            f"Starting {kind.value} phase: {self.concurrency} workers x {self.operations} ops "
            f"over {len(stores)} endpoint(s)"
        )

        window_start = time.time()
        first_error: Optional[BaseException] = None
        with ThreadPoolExecutor(max_workers=self.concurrency,
                                thread_name_prefix=f"{kind.value}-worker") as executor:
            futures = [
                executor.submit(
                    self._run_worker, kind, worker_id,
                    stores[worker_id % len(stores)], sink, abort
                )
                for worker_id in range(self.concurrency)
            ]
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)

            for future in done:
                if future.exception() is not None:
                    first_error = future.exception()
                    break

            if first_error is not None:
                abort.set()
                for future in not_done:
                    future.cancel()
        window_end = time.time()

        if first_error is not None:
            self.logger.error(f"{kind.value} phase aborted: {first_error}")
            raise first_error

        return PhaseResult(
            total_operations=self.concurrency * self.operations,
            window_start=window_start,
            window_end=window_end
        )

    def _operation(self, kind: OperationKind, store) -> Callable[[str], object]:
        if kind is OperationKind.WRITE:
            payload = random_payload(self.payload_size)
            return lambda key: store.set(key, payload)
        if kind is OperationKind.READ:
            return store.get
        return store.delete

    def _run_worker(
        self,
        kind: OperationKind,
        worker_id: int,
        store,
        sink: Optional[SampleSink],
        abort: threading.Event
    ) -> int:
        operation = self._operation(kind, store)
        samples: List[float] = []

        for index in range(self.operations):
            if abort.is_set():
                return 0
            key = make_key(self.key_prefix, worker_id, index)
            started = time.perf_counter()
            try:
                operation(key)
            except Exception as e:
                raise OperationError(kind.value, key, e) from e
            samples.append((time.perf_counter() - started) * 1000.0)

        if sink is not None:
            sink.submit(samples)
        return len(samples)
