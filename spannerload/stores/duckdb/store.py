"""DuckDB store applying each batch inside one transaction."""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import duckdb
from duckdb import DuckDBPyConnection

from spannerload.core.exceptions import StoreError, StoreRejectedError, TransientStoreError
from spannerload.core.mutation import OperationKind, WriteOperation
from spannerload.core.schema import Schema
from spannerload.models.sink_config import StoreConfig
from spannerload.stores.duckdb.type_mapper import DuckDBTypeMapper
from spannerload.stores.registry import register_store

logger = logging.getLogger(__name__)


class DuckDBStore:
    """Store backed by a DuckDB database (file-based or in-memory).

    Every submission runs between BEGIN TRANSACTION and COMMIT and is rolled
    back on the first failing operation. Primary-key violations and updates
    of missing rows are reported with the index of the failing operation.
    The commit timeout is enforced by interrupting the connection.
    """

    def __init__(self, config: StoreConfig, connection: DuckDBPyConnection | None = None):
        """Initialize DuckDB store.

        Args:
            config: Store configuration with the database path.
            connection: Optional existing connection to use instead of
                opening ``config.database``.
        """
        self._config = config
        self._database = config.database or ":memory:"
        self._create_table = config.create_table
        self._conn = connection
        self._key_columns: dict[str, tuple[str, ...]] = {}
        self._type_mapper = DuckDBTypeMapper()
        # One connection, one writer: submissions from parallel workers queue here
        self._lock = threading.Lock()

    def _get_connection(self) -> DuckDBPyConnection:
        """Get or create DuckDB connection."""
        if self._conn is None:
            try:
                self._conn = duckdb.connect(self._database)
            except duckdb.Error as e:
                raise StoreError(
                    f"Failed to connect to DuckDB: {e}",
                    context={"database": self._database},
                ) from e
        return self._conn

    def prepare(self, table: str, schema: Schema, key_columns: Sequence[str]) -> None:
        """Create the target table with its primary key if it does not exist."""
        self._key_columns[table] = tuple(key_columns)
        if not self._create_table:
            return

        column_defs = []
        for field in schema.fields:
            column_type = self._type_mapper.field_to_connector_type(field)
            not_null = "" if field.nullable and field.name not in key_columns else " NOT NULL"
            column_defs.append(f"{_quote(field.name)} {column_type}{not_null}")
        key_sql = ", ".join(_quote(name) for name in key_columns)
        column_defs.append(f"PRIMARY KEY ({key_sql})")

        conn = self._get_connection()
        with self._lock:
            try:
                conn.execute(
                    f"CREATE TABLE IF NOT EXISTS {_quote(table)} ({', '.join(column_defs)})"
                )
            except duckdb.Error as e:
                raise StoreError(
                    f"Failed to create table: {e}",
                    context={"table": table, "columns": schema.field_names()},
                ) from e

    def submit(
        self, operations: Sequence[WriteOperation], timeout: Optional[float] = None
    ) -> None:
        """Apply all operations in one transaction.

        Raises:
            TimeoutError: If the transaction ran longer than ``timeout``
            TransientStoreError: On transaction conflicts or I/O errors
            StoreRejectedError: On constraint violations and invalid operations
        """
        conn = self._get_connection()
        with self._lock:
            timer = threading.Timer(timeout, conn.interrupt) if timeout else None
            if timer is not None:
                timer.daemon = True
                timer.start()
            failed_index: Optional[int] = None
            try:
                conn.execute("BEGIN TRANSACTION")
                try:
                    for index, operation in enumerate(operations):
                        failed_index = index
                        self._apply(conn, operation, index)
                    failed_index = None
                    conn.execute("COMMIT")
                except BaseException:
                    self._rollback(conn)
                    raise
            except duckdb.InterruptException as e:
                raise TimeoutError(f"DuckDB transaction exceeded {timeout}s") from e
            except (duckdb.TransactionException, duckdb.IOException) as e:
                raise TransientStoreError(
                    f"DuckDB transaction failed: {e}",
                    context={"database": self._database},
                ) from e
            except duckdb.Error as e:
                raise StoreRejectedError(
                    f"DuckDB rejected operation: {e}",
                    operation_index=failed_index,
                    context={"database": self._database},
                ) from e
            finally:
                if timer is not None:
                    timer.cancel()

    def _apply(self, conn: DuckDBPyConnection, operation: WriteOperation, index: int) -> None:
        table = _quote(operation.table)
        keys = operation.key_columns or self._key_columns.get(operation.table, ())
        names = list(operation.columns)
        values = [_to_duckdb_value(operation.columns[name]) for name in names]
        non_keys = [name for name in names if name not in keys]
        where_sql = " AND ".join(f"{_quote(k)} = ?" for k in keys)
        key_values = [_to_duckdb_value(operation.columns[k]) for k in keys]

        column_sql = ", ".join(_quote(name) for name in names)
        placeholders = ", ".join("?" for _ in names)

        kind = operation.kind
        if kind == OperationKind.INSERT:
            conn.execute(f"INSERT INTO {table} ({column_sql}) VALUES ({placeholders})", values)
        elif kind == OperationKind.REPLACE:
            conn.execute(
                f"INSERT OR REPLACE INTO {table} ({column_sql}) VALUES ({placeholders})", values
            )
        elif kind == OperationKind.INSERT_OR_UPDATE:
            key_sql = ", ".join(_quote(k) for k in keys)
            if non_keys:
                set_sql = ", ".join(f"{_quote(c)} = EXCLUDED.{_quote(c)}" for c in non_keys)
                conflict_sql = f"ON CONFLICT ({key_sql}) DO UPDATE SET {set_sql}"
            else:
                conflict_sql = f"ON CONFLICT ({key_sql}) DO NOTHING"
            conn.execute(
                f"INSERT INTO {table} ({column_sql}) VALUES ({placeholders}) {conflict_sql}",
                values,
            )
        elif kind == OperationKind.UPDATE:
            if non_keys:
                set_sql = ", ".join(f"{_quote(c)} = ?" for c in non_keys)
                params = [_to_duckdb_value(operation.columns[c]) for c in non_keys] + key_values
                row = conn.execute(f"UPDATE {table} SET {set_sql} WHERE {where_sql}", params).fetchone()
            else:
                row = conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {where_sql}", key_values).fetchone()
            if not row or row[0] == 0:
                raise StoreRejectedError(
                    f"Row not found: {operation.key}",
                    operation_index=index,
                    context={"table": operation.table},
                )
        elif kind == OperationKind.DELETE:
            conn.execute(f"DELETE FROM {table} WHERE {where_sql}", key_values)

    def _rollback(self, conn: DuckDBPyConnection) -> None:
        try:
            conn.execute("ROLLBACK")
        except duckdb.Error as e:
            logger.warning(f"Rollback failed: {e}")

    def close(self) -> None:
        """Close the DuckDB connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _to_duckdb_value(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    if isinstance(value, list):
        return [_to_duckdb_value(item) for item in value]
    if isinstance(value, dict):
        return {key: _to_duckdb_value(item) for key, item in value.items()}
    return value


@register_store("duckdb")
def create_duckdb_store(config: StoreConfig) -> DuckDBStore:
    """Factory function for creating DuckDBStore instances."""
    return DuckDBStore(config)
