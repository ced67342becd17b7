"""Base protocol for transactional target stores."""

from typing import Optional, Protocol, Sequence, runtime_checkable

from spannerload.core.mutation import WriteOperation
from spannerload.core.schema import Schema


@runtime_checkable
class Store(Protocol):
    """Protocol for stores that apply write operations atomically.

    The store's wire protocol is opaque to the committer: a submission
    either applies every operation, in order, or none of them.

    Example:
        class MyStore:
            def prepare(self, table, schema, key_columns):
                ...  # create the table if needed

            def submit(self, operations, timeout=None):
                with self._client.transaction(timeout=timeout) as txn:
                    for op in operations:
                        txn.apply(op)

            def close(self):
                self._client.close()
    """

    def prepare(self, table: str, schema: Schema, key_columns: Sequence[str]) -> None:
        """Make the store ready to receive operations for ``table``.

        Called once by the sink runner before the first submission.
        """
        ...

    def submit(
        self, operations: Sequence[WriteOperation], timeout: Optional[float] = None
    ) -> None:
        """Apply all operations as one atomic transaction, in order.

        Args:
            operations: Operations to apply
            timeout: Optional commit timeout in seconds

        Raises:
            TransientStoreError: On failures that may succeed when retried
            TimeoutError: If the commit did not finish within ``timeout``
            StoreRejectedError: On non-retryable failures; carries the index
                of the offending operation when the store can determine it
        """
        ...

    def close(self) -> None:
        """Release connections held by the store."""
        ...
