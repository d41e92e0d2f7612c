"""Tests for the MetricsCollector class."""

import unittest

from featureservice.metrics import MetricsCollector
from featureservice.models import AttemptRecord


def _make_record(**overrides) -> AttemptRecord:
    """Helper to build an AttemptRecord with sensible defaults."""
    defaults = dict(index=0, attempt=0, success=True, latency_ms=100, error_type=None)
    defaults.update(overrides)
    return AttemptRecord(**defaults)


class TestMetricsCollector(unittest.TestCase):
    """Verify attempt recording and snapshot aggregation."""

    def test_empty_snapshot(self):
        """Snapshot with no events should have all zeros."""
        snap = MetricsCollector().snapshot()
        self.assertEqual(snap.total_attempts, 0)
        self.assertEqual(snap.success_count, 0)
        self.assertEqual(snap.avg_latency_ms, 0.0)

    def test_records_success_and_failure(self):
        """Successes and failures should be counted separately."""
        metrics = MetricsCollector()
        metrics.record(_make_record())
        metrics.record(_make_record(success=False, error_type="timeout"))
        metrics.record(_make_record(success=False, error_type="server_error"))
        snap = metrics.snapshot()
        self.assertEqual(snap.total_attempts, 3)
        self.assertEqual(snap.success_count, 1)
        self.assertEqual(snap.failure_count, 2)
        self.assertEqual(snap.timeout_count, 1)

    def test_retries_counted_by_attempt(self):
        """Any attempt past the first is a retry."""
        metrics = MetricsCollector()
        metrics.record(_make_record(attempt=0, success=False, error_type="connection"))
        metrics.record(_make_record(attempt=1))
        snap = metrics.snapshot()
        self.assertEqual(snap.retry_count, 1)

    def test_average_latency(self):
        """Average latency should be computed correctly."""
        metrics = MetricsCollector()
        metrics.record(_make_record(latency_ms=100))
        metrics.record(_make_record(latency_ms=200))
        self.assertAlmostEqual(metrics.snapshot().avg_latency_ms, 150.0)

    def test_export_json(self):
        """export_json should return all recorded attempts as dicts."""
        metrics = MetricsCollector()
        metrics.record(_make_record(index=7))
        exported = metrics.export_json()
        self.assertEqual(len(exported), 1)
        self.assertEqual(exported[0]["index"], 7)
        self.assertIn("timestamp", exported[0])


if __name__ == "__main__":
    unittest.main()
