"""Metrics collection for sink execution."""

import time
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class MetricsCollector:
    """Collects metrics while records flow through the sink."""

    sink_name: str
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    records_received: int = 0
    records_rejected: int = 0
    batches_committed: int = 0
    batches_failed: int = 0
    operations_committed: int = 0
    operations_failed: int = 0
    commit_attempts: int = 0
    execution_time: float = 0.0

    batch_times: list[float] = field(default_factory=list)
    error_details: list[dict[str, Any]] = field(default_factory=list)

    @property
    def records_transformed(self) -> int:
        return self.records_received - self.records_rejected

    def record_received(self, count: int = 1) -> None:
        self.records_received += count

    def record_rejection(self, error: Exception, record_index: int) -> None:
        """Record a record rejected by the transformer."""
        self.records_rejected += 1
        self._add_error(error, {"record_index": record_index})

    def record_batch(self, operation_count: int, batch_time: float, attempts: int = 1) -> None:
        """Record a committed batch.

        Args:
            operation_count: Number of operations in the batch
            batch_time: Time taken to commit the batch in seconds
            attempts: Submit attempts used, including retries
        """
        self.batches_committed += 1
        self.operations_committed += operation_count
        self.commit_attempts += attempts
        self.batch_times.append(batch_time)

    def record_batch_failure(
        self,
        error: Exception,
        operation_count: int,
        attempts: int = 1,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Record a batch that failed to commit."""
        self.batches_failed += 1
        self.operations_failed += operation_count
        self.commit_attempts += attempts
        self._add_error(error, context)

    def merge(self, other: "MetricsCollector") -> None:
        """Fold the counters of a worker's collector into this one."""
        self.records_received += other.records_received
        self.records_rejected += other.records_rejected
        self.batches_committed += other.batches_committed
        self.batches_failed += other.batches_failed
        self.operations_committed += other.operations_committed
        self.operations_failed += other.operations_failed
        self.commit_attempts += other.commit_attempts
        self.batch_times.extend(other.batch_times)
        self.error_details.extend(other.error_details)

    def finish(self) -> None:
        """Mark execution as finished and calculate final metrics."""
        self.end_time = time.time()
        self.execution_time = self.end_time - self.start_time

    def to_dict(self) -> dict[str, Any]:
        """Export metrics as dictionary."""
        avg_batch_time = (
            sum(self.batch_times) / len(self.batch_times) if self.batch_times else 0.0
        )
        records_per_second = (
            self.records_transformed / self.execution_time
            if self.execution_time > 0
            else 0.0
        )

        return {
            "sink_name": self.sink_name,
            "execution_time": self.execution_time,
            "records_received": self.records_received,
            "records_transformed": self.records_transformed,
            "records_rejected": self.records_rejected,
            "batches_committed": self.batches_committed,
            "batches_failed": self.batches_failed,
            "operations_committed": self.operations_committed,
            "operations_failed": self.operations_failed,
            "commit_attempts": self.commit_attempts,
            "avg_batch_time": avg_batch_time,
            "records_per_second": records_per_second,
            "error_details": self.error_details,
        }

    def get_summary(self) -> str:
        """Get human-readable summary of metrics."""
        if not self.end_time:
            self.finish()

        metrics = self.to_dict()
        summary_parts = [
            f"Sink: {metrics['sink_name']}",
            f"Records: {metrics['records_received']}",
            f"Batches: {metrics['batches_committed']}",
            f"Operations: {metrics['operations_committed']}",
            f"Time: {metrics['execution_time']:.2f}s",
            f"Rate: {metrics['records_per_second']:.0f} records/s",
        ]

        if metrics["records_rejected"] > 0:
            summary_parts.append(f"Rejected: {metrics['records_rejected']}")
        if metrics["batches_failed"] > 0:
            summary_parts.append(f"Failed batches: {metrics['batches_failed']}")

        return " | ".join(summary_parts)

    def _add_error(self, error: Exception, context: dict[str, Any] | None) -> None:
        error_detail: dict[str, Any] = {
            "error_type": type(error).__name__,
            "error_message": str(error),
        }
        if context:
            error_detail["context"] = context
        self.error_details.append(error_detail)
