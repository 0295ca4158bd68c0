"""Sample sink: the single writer of a phase's sample log.

Worker threads hand their finished batches to :meth:`SampleSink.submit`; one
consumer thread owns the file and appends each batch in arrival order as
little-endian float64 values. No header, no separators.
"""

import os
import queue
import threading
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np

from .errors import SampleLogError
from ..utils.logging import LoggerMixin


SAMPLE_DTYPE = np.dtype('<f8')

_CLOSE = object()


def encode_samples(samples: Sequence[float]) -> bytes:
    return np.asarray(samples, dtype=SAMPLE_DTYPE).tobytes()


def read_samples(path: Union[str, Path]) -> np.ndarray:
    """Read a sample log back into a float64 array.

    Raises:
        SampleLogError: the file cannot be read or is not a whole number of samples
    """
    try:
        size = os.path.getsize(path)
        if size % SAMPLE_DTYPE.itemsize != 0:
            raise SampleLogError(f"{path}: size {size} is not a multiple of {SAMPLE_DTYPE.itemsize}")
        return np.fromfile(path, dtype=SAMPLE_DTYPE).astype(np.float64)
    except OSError as e:
        raise SampleLogError(f"failed to read sample log {path}: {e}") from e


class SampleSink(LoggerMixin):
    """Single-consumer recorder of latency sample batches."""

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._queue: "queue.Queue" = queue.Queue()
        self._error: Optional[BaseException] = None
        self._closed = False
        self._lock = threading.Lock()
        self.samples_written = 0
        self.batches_written = 0

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.path, 'xb')
        except OSError as e:
            raise SampleLogError(f"failed to open sample log {self.path}: {e}") from e

        self._consumer = threading.Thread(
            target=self._consume,
            name=f"sample-sink-{self.path.name}",
            daemon=True
        )
        self._consumer.start()

    def submit(self, batch: Sequence[float]) -> None:
        """Hand a finished batch over to the sink; safe from any thread."""
        with self._lock:
            if self._closed:
                raise SampleLogError(f"sample sink {self.path} is closed")
            self._raise_if_failed()
            self._queue.put(list(batch))

    def close(self) -> None:
        """Drain pending batches, flush and close the log.

        Raises:
            SampleLogError: the consumer failed to write a batch
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_CLOSE)

        self._consumer.join()
        self._raise_if_failed()
        self.logger.debug(
            f"Sample log {self.path} closed: {self.samples_written} samples "
            f"in {self.batches_written} batches"
        )

    def _consume(self) -> None:
        try:
            while True:
                batch = self._queue.get()
                if batch is _CLOSE:
                    break
                self._file.write(encode_samples(batch))
                self.samples_written += len(batch)
                self.batches_written += 1
        except OSError as e:
            self._error = e
            # keep draining so close() never blocks on a full pipeline
            while self._queue.get() is not _CLOSE:
                pass
        finally:
            try:
                self._file.flush()
                self._file.close()
            except OSError as e:
                if self._error is None:
                    self._error = e

    def _raise_if_failed(self) -> None:
        if self._error is not None:
            raise SampleLogError(f"failed to write sample log {self.path}: {self._error}") from self._error

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
