"""Record-to-write-operation transformation."""

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence

from spannerload.core.exceptions import (
    ConfigError,
    MissingKeyError,
    MissingRequiredFieldError,
    RecordError,
)
from spannerload.core.field_mapper import FieldMapper
from spannerload.core.mutation import OperationKind, WriteOperation
from spannerload.core.schema import Schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformOutcome:
    """Result of transforming one record: an operation or the error that rejected it."""

    index: int
    operation: Optional[WriteOperation] = None
    error: Optional[RecordError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RecordTransformer:
    """Converts generic records into write operations for one table.

    The transformer is pure: it performs no I/O and holds no mutable state,
    so a single instance can be shared by parallel workers.
    """

    def __init__(
        self,
        table: str,
        schema: Schema,
        key_columns: Sequence[str],
        kind: OperationKind = OperationKind.INSERT,
        field_mapper: FieldMapper | None = None,
    ):
        """Initialize the transformer.

        Args:
            table: Target table name
            schema: Resolved schema the records conform to
            key_columns: Primary-key column names, in key order
            kind: Kind of operation to emit for every record
            field_mapper: Optional custom field mapper

        Raises:
            ConfigError: If a key column is not part of the schema
        """
        missing = [name for name in key_columns if schema.get_field(name) is None]
        if missing:
            raise ConfigError(
                f"Key columns not found in schema: {', '.join(missing)}",
                context={"table": table, "schema_fields": schema.field_names()},
            )
        self.table = table
        self.schema = schema
        self.key_columns = tuple(key_columns)
        self.kind = OperationKind(kind)
        self._mapper = field_mapper or FieldMapper()
        if self.kind == OperationKind.DELETE:
            self._fields = tuple(schema.get_field(name) for name in self.key_columns)
        else:
            self._fields = schema.fields

    def transform(self, record: Mapping[str, Any]) -> WriteOperation:
        """Convert one record into a write operation.

        Record fields that are not part of the schema are dropped.

        Raises:
            MissingKeyError: If a key column is absent or NULL
            MissingRequiredFieldError: If a non-nullable field is absent
            NullNotAllowedError: If a non-nullable field is NULL
            TypeMismatchError: If a value cannot be converted losslessly
        """
        for name in self.key_columns:
            if record.get(name) is None:
                raise MissingKeyError(f"Key column '{name}' is missing or null", field=name)

        columns: dict[str, Any] = {}
        for field in self._fields:
            if field.name not in record:
                if not field.nullable:
                    raise MissingRequiredFieldError(
                        f"Required field '{field.name}' is missing", field=field.name
                    )
                columns[field.name] = None
                continue
            columns[field.name] = self._mapper.map_value(field, record[field.name])

        return WriteOperation(
            table=self.table,
            kind=self.kind,
            columns=columns,
            key_columns=self.key_columns,
        )

    def transform_all(self, records: Iterable[Mapping[str, Any]]) -> Iterator[TransformOutcome]:
        """Transform records lazily, yielding one outcome per record.

        Per-record errors are captured in the outcome instead of raised, so
        one bad record never stops the stream.
        """
        for index, record in enumerate(records):
            try:
                yield TransformOutcome(index=index, operation=self.transform(record))
            except RecordError as e:
                logger.debug(
                    f"Record {index} rejected: {e}", extra={"table": self.table}
                )
                yield TransformOutcome(index=index, error=e)
