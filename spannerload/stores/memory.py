"""Transactional in-memory store."""

import logging
import threading
from typing import Any, Optional, Sequence

from spannerload.core.exceptions import StoreError, StoreRejectedError
from spannerload.core.mutation import OperationKind, WriteOperation
from spannerload.core.schema import Schema
from spannerload.models.sink_config import StoreConfig
from spannerload.stores.registry import register_store

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class MemoryStore:
    """Keeps tables as dictionaries keyed by primary key.

    Each submission is applied to a copy of the affected tables and swapped
    in only when every operation succeeded, so a failed submission leaves
    no trace. Mutation semantics follow Spanner: inserting an existing key
    or updating a missing row is rejected, deleting a missing row is a
    no-op.
    """

    def __init__(self, config: StoreConfig | None = None):
        self._config = config
        self._tables: dict[str, dict[tuple, Row]] = {}
        self._key_columns: dict[str, tuple[str, ...]] = {}
        self._lock = threading.Lock()
        self.submissions = 0

    def prepare(self, table: str, schema: Schema, key_columns: Sequence[str]) -> None:
        with self._lock:
            self._tables.setdefault(table, {})
            self._key_columns[table] = tuple(key_columns)

    def submit(
        self, operations: Sequence[WriteOperation], timeout: Optional[float] = None
    ) -> None:
        with self._lock:
            self.submissions += 1
            staged = {
                table: dict(rows)
                for table, rows in self._tables.items()
                if any(op.table == table for op in operations)
            }
            for index, operation in enumerate(operations):
                if operation.table not in staged:
                    raise StoreRejectedError(
                        f"Table not found: {operation.table}",
                        operation_index=index,
                        context={"table": operation.table},
                    )
                self._apply(staged[operation.table], operation, index)
            self._tables.update(staged)
        logger.debug(f"Applied {len(operations)} operations")

    def rows(self, table: str) -> list[Row]:
        """Return the rows of ``table`` ordered by primary key."""
        with self._lock:
            if table not in self._tables:
                raise StoreError(f"Table not found: {table}", context={"table": table})
            return [dict(self._tables[table][key]) for key in sorted(self._tables[table])]

    def close(self) -> None:
        pass

    def _apply(self, rows: dict[tuple, Row], operation: WriteOperation, index: int) -> None:
        key = operation.key
        kind = operation.kind
        if kind == OperationKind.INSERT:
            if key in rows:
                raise StoreRejectedError(
                    f"Row already exists: {key}",
                    operation_index=index,
                    context={"table": operation.table},
                )
            rows[key] = dict(operation.columns)
        elif kind == OperationKind.UPDATE:
            if key not in rows:
                raise StoreRejectedError(
                    f"Row not found: {key}",
                    operation_index=index,
                    context={"table": operation.table},
                )
            rows[key] = {**rows[key], **operation.columns}
        elif kind == OperationKind.INSERT_OR_UPDATE:
            rows[key] = {**rows.get(key, {}), **operation.columns}
        elif kind == OperationKind.REPLACE:
            rows[key] = dict(operation.columns)
        elif kind == OperationKind.DELETE:
            rows.pop(key, None)


@register_store("memory")
def create_memory_store(config: StoreConfig) -> MemoryStore:
    """Factory function for creating MemoryStore instances."""
    return MemoryStore(config)
