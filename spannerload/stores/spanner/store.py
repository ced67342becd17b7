"""Cloud Spanner store using the google-cloud-spanner client."""

import base64
import logging
from typing import Any, Optional, Sequence

try:
    from google.api_core import exceptions as api_exceptions
    from google.cloud import spanner
except ImportError:
    api_exceptions = None  # type: ignore
    spanner = None  # type: ignore

from spannerload.core.exceptions import StoreError, StoreRejectedError, TransientStoreError
from spannerload.core.mutation import OperationKind, WriteOperation
from spannerload.core.schema import FieldType, Schema
from spannerload.models.sink_config import StoreConfig
from spannerload.stores.registry import register_store
from spannerload.stores.spanner.type_mapper import SpannerTypeMapper

logger = logging.getLogger(__name__)

# Error names (google.api_core.exceptions) treated as retryable
TRANSIENT_ERROR_NAMES = (
    "Aborted",
    "ServiceUnavailable",
    "DeadlineExceeded",
    "ResourceExhausted",
    "InternalServerError",
)


class SpannerStore:
    """Store writing mutations to a Cloud Spanner database.

    Each submission is one read-write transaction run through
    ``Database.run_in_transaction``; mutations are buffered in submission
    order and applied atomically at commit. Spanner does not report which
    mutation caused a commit failure, so rejections carry no index.
    """

    def __init__(self, config: StoreConfig):
        """Initialize SpannerStore.

        Raises:
            ImportError: If google-cloud-spanner is not installed
                (install with: pip install spannerload[spanner])
        """
        if spanner is None:
            raise ImportError(
                "SpannerStore requires google-cloud-spanner. "
                "Install it with: pip install spannerload[spanner]"
            )
        self._config = config
        self._project = config.project
        self._instance_id = config.instance
        self._database_id = config.database
        self._create_table = config.create_table
        self._client = None
        self._database = None
        self._bytes_columns: dict[str, set[str]] = {}
        self._type_mapper = SpannerTypeMapper()

    def _get_database(self):
        """Get or create the Spanner database handle."""
        if self._database is None:
            try:
                self._client = spanner.Client(project=self._project)
                instance = self._client.instance(self._instance_id)
                self._database = instance.database(self._database_id)
            except api_exceptions.GoogleAPICallError as e:
                raise StoreError(
                    f"Failed to connect to Spanner: {e}",
                    context={"instance": self._instance_id, "database": self._database_id},
                ) from e
        return self._database

    def prepare(self, table: str, schema: Schema, key_columns: Sequence[str]) -> None:
        """Create the target table if it does not exist.

        Raises:
            StoreError: If the schema cannot be expressed in Spanner or the
                DDL update fails
        """
        self._bytes_columns[table] = {
            f.name
            for f in schema.fields
            if f.type == FieldType.BYTES
            or (f.type == FieldType.ARRAY and f.element.type == FieldType.BYTES)
        }
        try:
            ddl = self.create_table_ddl(table, schema, key_columns)
        except ValueError as e:
            raise StoreError(str(e), context={"table": table}) from e
        if not self._create_table:
            return

        database = self._get_database()
        try:
            if database.table(table).exists():
                return
            logger.info(f"Creating Spanner table {table}", extra={"table": table})
            database.update_ddl([ddl]).result()
        except api_exceptions.GoogleAPICallError as e:
            raise StoreError(
                f"Failed to create table: {e}",
                context={"table": table, "ddl": ddl},
            ) from e

    def create_table_ddl(self, table: str, schema: Schema, key_columns: Sequence[str]) -> str:
        """Render the CREATE TABLE statement for ``table``."""
        column_defs = []
        for field in schema.fields:
            column_type = self._type_mapper.field_to_connector_type(field)
            not_null = "" if field.nullable and field.name not in key_columns else " NOT NULL"
            column_defs.append(f"{field.name} {column_type}{not_null}")
        return (
            f"CREATE TABLE {table} ({', '.join(column_defs)}) "
            f"PRIMARY KEY ({', '.join(key_columns)})"
        )

    def submit(
        self, operations: Sequence[WriteOperation], timeout: Optional[float] = None
    ) -> None:
        """Apply all operations in one read-write transaction.

        Raises:
            TransientStoreError: On aborts, unavailability, throttling, deadlines
            StoreRejectedError: On any other API error
        """
        database = self._get_database()

        def apply_operations(transaction) -> None:
            for operation in operations:
                self._buffer(transaction, operation)

        kwargs = {}
        if timeout is not None:
            kwargs["timeout_secs"] = timeout
        try:
            database.run_in_transaction(apply_operations, **kwargs)
        except api_exceptions.GoogleAPICallError as e:
            if isinstance(e, _transient_errors()):
                raise TransientStoreError(
                    f"Spanner commit failed: {e}",
                    context={"database": self._database_id},
                ) from e
            raise StoreRejectedError(
                f"Spanner rejected commit: {e}",
                context={"database": self._database_id},
            ) from e

    def _buffer(self, transaction, operation: WriteOperation) -> None:
        if operation.kind == OperationKind.DELETE:
            keyset = spanner.KeySet(keys=[list(operation.key)])
            transaction.delete(operation.table, keyset)
            return

        columns = list(operation.columns)
        bytes_columns = self._bytes_columns.get(operation.table, set())
        values = [
            [
                _encode_bytes(operation.columns[name]) if name in bytes_columns else operation.columns[name]
                for name in columns
            ]
        ]
        writer = {
            OperationKind.INSERT: transaction.insert,
            OperationKind.UPDATE: transaction.update,
            OperationKind.INSERT_OR_UPDATE: transaction.insert_or_update,
            OperationKind.REPLACE: transaction.replace,
        }[operation.kind]
        writer(operation.table, columns=columns, values=values)

    def close(self) -> None:
        """Drop the client handles."""
        if self._client is not None:
            self._client.close()
        self._client = None
        self._database = None


def _transient_errors() -> tuple[type, ...]:
    return tuple(
        getattr(api_exceptions, name)
        for name in TRANSIENT_ERROR_NAMES
        if hasattr(api_exceptions, name)
    )


def _encode_bytes(value: Any) -> Any:
    # The client expects BYTES values base64-encoded
    if value is None:
        return None
    if isinstance(value, list):
        return [_encode_bytes(item) for item in value]
    return base64.b64encode(value)


@register_store("spanner")
def create_spanner_store(config: StoreConfig) -> SpannerStore:
    """Factory function for creating SpannerStore instances."""
    return SpannerStore(config)
