"""Test latency statistics."""

import random

import pytest

from redisbench.utils.latency_recorder import (
    LatencyRecorder,
    merge_encoded_histograms,
    percentile,
    summarize_samples
)


class TestPercentile:
    """Test interpolated percentiles."""

    def test_interpolation(self):
        """Test linear interpolation between neighbouring ranks."""
        values = [1.0, 2.0, 3.0, 4.0, 5.0]

        assert percentile(values, 50) == 3.0
        # rank 0.9 * 4 = 3.6
        assert percentile(values, 90) == pytest.approx(4.6)
        assert percentile(values, 25) == pytest.approx(2.0)

    def test_bounds(self):
        """Test that p0 is the minimum and p100 the maximum."""
        rng = random.Random(7)
        values = sorted(rng.uniform(0.1, 20.0) for _ in range(101))

        assert percentile(values, 0) == values[0]
        assert percentile(values, 100) == values[-1]

    def test_single_sample(self):
        """Test a one element sample set."""
        assert percentile([2.5], 0) == 2.5
        assert percentile([2.5], 99) == 2.5

    def test_monotonic(self):
        """Test that percentiles never decrease with p."""
        rng = random.Random(11)
        values = sorted(rng.expovariate(1.0) for _ in range(257))

        previous = percentile(values, 0)
        for p in range(1, 101):
            current = percentile(values, p)
            assert current >= previous
            previous = current

    def test_invalid_arguments(self):
        """Test empty sample sets and out of range percentiles."""
        with pytest.raises(ValueError):
            percentile([], 50)

        with pytest.raises(ValueError):
            percentile([1.0, 2.0], 101)

        with pytest.raises(ValueError):
            percentile([1.0, 2.0], -1)


class TestSummarizeSamples:
    """Test sample summaries."""

    def test_summarize_unsorted_samples(self):
        """Test that samples are sorted before percentiles are taken."""
        samples = [float(v) for v in range(100, 0, -1)]

        snapshot = summarize_samples(samples)
        assert snapshot.count == 100
        assert snapshot.min_ms == 1.0
        assert snapshot.max_ms == 100.0
        assert snapshot.p90_ms == pytest.approx(90.1)
        assert snapshot.p95_ms == pytest.approx(95.05)
        assert snapshot.p99_ms == pytest.approx(99.01)

    def test_describe(self):
        """Test the log line format."""
        snapshot = summarize_samples([1.0, 2.0])

        assert snapshot.describe().startswith("p90: 1.900000, p95: 1.950000, p99: 1.990000")
        assert snapshot.describe().endswith("min: 1.000000, max: 2.000000")
        assert snapshot.to_dict()["count"] == 2

    def test_summarize_empty(self):
        """Test that an empty sample set is rejected."""
        with pytest.raises(ValueError):
            summarize_samples([])


class TestLatencyRecorder:
    """Test the histogram recorder."""

    def test_record_and_snapshot(self):
        """Test recording latencies in milliseconds."""
        recorder = LatencyRecorder()
        recorder.record_many([1.0, 2.0, 3.0, 4.0])

        snapshot = recorder.get_snapshot()
        assert snapshot.count == 4
        assert snapshot.min_ms == pytest.approx(1.0, rel=0.01)
        assert snapshot.max_ms == pytest.approx(4.0, rel=0.01)

    def test_sub_microsecond_latency_is_clamped(self):
        """Test that tiny latencies still count."""
        recorder = LatencyRecorder()
        recorder.record_latency(0.0001)

        assert recorder.count == 1

    def test_empty_recorder(self):
        """Test the empty recorder."""
        recorder = LatencyRecorder()

        assert recorder.get_snapshot() is None
        assert recorder.export_histogram() is None

    def test_merge_encoded_histograms(self):
        """Test merging histograms shipped by several nodes."""
        first = LatencyRecorder()
        first.record_many([1.0] * 10)
        second = LatencyRecorder()
        second.record_many([50.0] * 5)

        snapshot = merge_encoded_histograms([first.export_histogram(), None, second.export_histogram()])
        assert snapshot.count == 15
        assert snapshot.min_ms == pytest.approx(1.0, rel=0.01)
        assert snapshot.max_ms == pytest.approx(50.0, rel=0.01)

    def test_merge_nothing(self):
        """Test merging no histograms."""
        assert merge_encoded_histograms([None]) is None
