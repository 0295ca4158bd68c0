"""Test the sample sink and sample logs."""

import struct
import threading

import numpy as np
import pytest

from redisbench.core.errors import SampleLogError
from redisbench.core.sink import SampleSink, encode_samples, read_samples


class TestSampleLog:
    """Test the binary sample log format."""

    def test_encoding_is_little_endian_float64(self):
        """Test the on-disk layout of a batch."""
        encoded = encode_samples([1.5, 0.25])

        assert encoded == struct.pack('<dd', 1.5, 0.25)

    def test_read_back_is_bit_exact(self, tmp_path):
        """Test that samples survive the log unchanged."""
        samples = [0.1, 1e-9, 123.456789, 3.0]
        path = tmp_path / "write.bin"

        with SampleSink(path) as sink:
            sink.submit(samples)

        restored = read_samples(path)
        assert restored.dtype == np.float64
        assert restored.tolist() == samples

    def test_read_truncated_log(self, tmp_path):
        """Test that a partial sample is reported."""
        path = tmp_path / "broken.bin"
        path.write_bytes(struct.pack('<d', 1.0) + b'\x00\x01\x02')

        with pytest.raises(SampleLogError, match="multiple of 8"):
            read_samples(path)

    def test_read_missing_log(self, tmp_path):
        """Test reading a log that does not exist."""
        with pytest.raises(SampleLogError):
            read_samples(tmp_path / "missing.bin")

    def test_empty_log(self, tmp_path):
        """Test that a sink without batches leaves an empty log."""
        path = tmp_path / "nested" / "read.bin"

        SampleSink(path).close()

        assert path.exists()
        assert read_samples(path).size == 0


class TestSampleSink:
    """Test the single consumer sink."""

    def test_concurrent_producers(self, tmp_path):
        """Test that no sample is lost with many producing threads."""
        path = tmp_path / "write.bin"
        producers = 32
        batch_size = 250
        sink = SampleSink(path)

        def produce(worker_id):
            sink.submit([float(worker_id)] * batch_size)

        threads = [threading.Thread(target=produce, args=(i,)) for i in range(producers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        sink.close()

        samples = read_samples(path)
        assert samples.size == producers * batch_size
        assert sink.samples_written == producers * batch_size
        assert sink.batches_written == producers

        # each batch lands contiguously
        for offset in range(0, samples.size, batch_size):
            batch = samples[offset:offset + batch_size]
            assert (batch == batch[0]).all()
        assert sorted(set(samples.tolist())) == [float(i) for i in range(producers)]

    def test_batches_keep_arrival_order(self, tmp_path):
        """Test that batches from one producer stay in order."""
        path = tmp_path / "read.bin"

        with SampleSink(path) as sink:
            sink.submit([1.0, 2.0])
            sink.submit([3.0])
            sink.submit([4.0, 5.0])

        assert read_samples(path).tolist() == [1.0, 2.0, 3.0, 4.0, 5.0]

    def test_submit_after_close(self, tmp_path):
        """Test that a closed sink rejects batches."""
        sink = SampleSink(tmp_path / "write.bin")
        sink.close()

        with pytest.raises(SampleLogError, match="closed"):
            sink.submit([1.0])

    def test_close_is_idempotent(self, tmp_path):
        """Test closing a sink twice."""
        sink = SampleSink(tmp_path / "write.bin")
        sink.submit([1.0])
        sink.close()
        sink.close()

        assert sink.samples_written == 1

    def test_unwritable_path(self, tmp_path):
        """Test that a log that cannot be opened raises SampleLogError."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")

        with pytest.raises(SampleLogError):
            SampleSink(blocker / "write.bin")
