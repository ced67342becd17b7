"""Batches of write operations and the accumulator that builds them."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from spannerload.core.mutation import WriteOperation


class BatchState(str, Enum):
    """Lifecycle of a batch.

    OPEN -> SEALED -> SUBMITTING -> {COMMITTED | RETRYING -> SUBMITTING | FAILED}
    """

    OPEN = "open"
    SEALED = "sealed"
    SUBMITTING = "submitting"
    RETRYING = "retrying"
    COMMITTED = "committed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({BatchState.COMMITTED, BatchState.FAILED})


@dataclass(frozen=True)
class Batch:
    """A sealed, immutable group of operations committed as one transaction."""

    batch_id: str
    operations: tuple[WriteOperation, ...]
    size_bytes: int

    @property
    def operation_count(self) -> int:
        return len(self.operations)

    def __len__(self) -> int:
        return len(self.operations)


class BatchAccumulator:
    """Groups write operations into bounded batches.

    A batch is sealed as soon as it holds ``max_operations`` operations or
    at least ``max_bytes`` bytes. An operation that would push a non-empty
    batch past ``max_bytes`` seals that batch first and starts the next one,
    so only a single oversized operation can ever exceed the byte bound.

    The accumulator is single-writer; each worker owns its own instance.
    """

    def __init__(self, max_operations: int, max_bytes: int, batch_prefix: str = "batch"):
        if max_operations < 1:
            raise ValueError("max_operations must be at least 1")
        if max_bytes < 1:
            raise ValueError("max_bytes must be at least 1")
        self.max_operations = max_operations
        self.max_bytes = max_bytes
        self.batch_prefix = batch_prefix
        self._operations: list[WriteOperation] = []
        self._size = 0
        self._sequence = 0

    @property
    def pending_count(self) -> int:
        """Number of operations in the open batch."""
        return len(self._operations)

    @property
    def pending_bytes(self) -> int:
        return self._size

    @property
    def sealed_count(self) -> int:
        """Number of batches sealed so far."""
        return self._sequence

    def add(self, operation: WriteOperation) -> Optional[Batch]:
        """Append an operation to the open batch.

        Returns:
            The sealed batch when a bound was reached, otherwise None. The
            caller owns the returned batch and must commit it.
        """
        size = operation.estimated_size()
        if self._operations and self._size + size > self.max_bytes:
            sealed = self._seal()
            self._append(operation, size)
            return sealed

        self._append(operation, size)
        if len(self._operations) >= self.max_operations or self._size >= self.max_bytes:
            return self._seal()
        return None

    def flush(self) -> Optional[Batch]:
        """Seal and return the open batch, or None if it is empty."""
        if not self._operations:
            return None
        return self._seal()

    def discard(self) -> int:
        """Drop the open batch without sealing it.

        Returns:
            Number of operations dropped
        """
        dropped = len(self._operations)
        self._operations = []
        self._size = 0
        return dropped

    def _append(self, operation: WriteOperation, size: int) -> None:
        self._operations.append(operation)
        self._size += size

    def _seal(self) -> Batch:
        self._sequence += 1
        batch = Batch(
            batch_id=f"{self.batch_prefix}-{self._sequence}",
            operations=tuple(self._operations),
            size_bytes=self._size,
        )
        self._operations = []
        self._size = 0
        return batch
