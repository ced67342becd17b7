"""Unit tests for metrics collection."""

import time

from spannerload.core.exceptions import CommitRejectedError, MissingKeyError
from spannerload.core.metrics import MetricsCollector


def test_metrics_collector_basic():
    """Test basic metrics collection."""
    metrics = MetricsCollector("test_sink")

    metrics.record_received(5)
    metrics.record_batch(2, 0.5)
    metrics.record_batch(3, 0.8, attempts=2)

    # Add a small sleep to ensure measurable execution time
    time.sleep(0.01)

    metrics.finish()

    assert metrics.batches_committed == 2
    assert metrics.operations_committed == 5
    assert metrics.commit_attempts == 3
    assert metrics.records_transformed == 5
    assert metrics.execution_time > 0


def test_metrics_collector_errors():
    """Test rejection and batch failure recording."""
    metrics = MetricsCollector("test_sink")

    metrics.record_received(3)
    metrics.record_rejection(MissingKeyError("Key column 'id' is missing or null", field="id"), 2)
    metrics.record_batch_failure(
        CommitRejectedError("Commit rejected"), 2, attempts=1, context={"batch_id": "batch-1"}
    )
    metrics.finish()

    assert metrics.records_rejected == 1
    assert metrics.records_transformed == 2
    assert metrics.batches_failed == 1
    assert metrics.operations_failed == 2
    assert [d["error_type"] for d in metrics.error_details] == [
        "MissingKeyError",
        "CommitRejectedError",
    ]
    assert metrics.error_details[0]["context"] == {"record_index": 2}
    assert metrics.error_details[1]["context"] == {"batch_id": "batch-1"}


def test_metrics_collector_merge():
    """Test folding worker collectors together."""
    total = MetricsCollector("test_sink")
    for _ in range(2):
        worker = MetricsCollector("test_sink")
        worker.record_received(4)
        worker.record_batch(4, 0.1)
        total.merge(worker)

    assert total.records_received == 8
    assert total.operations_committed == 8
    assert total.batch_times == [0.1, 0.1]


def test_metrics_collector_to_dict():
    """Test metrics export to dictionary."""
    metrics = MetricsCollector("test_sink")

    metrics.record_received(3)
    metrics.record_batch(3, 0.5)
    metrics.finish()

    metrics_dict = metrics.to_dict()

    assert metrics_dict["sink_name"] == "test_sink"
    assert metrics_dict["batches_committed"] == 1
    assert metrics_dict["operations_committed"] == 3
    assert metrics_dict["avg_batch_time"] == 0.5
    assert "execution_time" in metrics_dict
    assert "records_per_second" in metrics_dict


def test_metrics_collector_summary():
    """Test metrics summary string."""
    metrics = MetricsCollector("test_sink")

    metrics.record_received(2)
    metrics.record_rejection(ValueError("bad"), 0)
    metrics.record_batch(1, 0.5)
    metrics.finish()

    summary = metrics.get_summary()

    assert "Sink: test_sink" in summary
    assert "Records: 2" in summary
    assert "Operations: 1" in summary
    assert "Rejected: 1" in summary
    assert "Failed batches" not in summary
