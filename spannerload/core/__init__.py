"""Core module for spannerload package.

Only the pure building blocks are exported here. The runner lives in
spannerload.core.engine and depends on the stores package.
"""

from spannerload.core.batch import Batch, BatchAccumulator, BatchState
from spannerload.core.exceptions import (
    CommitError,
    CommitExhaustedError,
    CommitRejectedError,
    ConfigError,
    EngineError,
    InputError,
    MissingKeyError,
    MissingRequiredFieldError,
    NullNotAllowedError,
    RecordError,
    SpannerLoadError,
    StoreError,
    StoreRejectedError,
    TransientStoreError,
    TypeMismatchError,
)
from spannerload.core.field_mapper import FieldMapper, map_value
from spannerload.core.mutation import OperationKind, WriteOperation
from spannerload.core.schema import FieldType, Schema, SchemaField
from spannerload.core.transformer import RecordTransformer, TransformOutcome

__all__ = [
    "Batch",
    "BatchAccumulator",
    "BatchState",
    "FieldMapper",
    "map_value",
    "OperationKind",
    "WriteOperation",
    "FieldType",
    "Schema",
    "SchemaField",
    "RecordTransformer",
    "TransformOutcome",
    "SpannerLoadError",
    "ConfigError",
    "InputError",
    "EngineError",
    "RecordError",
    "TypeMismatchError",
    "NullNotAllowedError",
    "MissingRequiredFieldError",
    "MissingKeyError",
    "CommitError",
    "CommitRejectedError",
    "CommitExhaustedError",
    "StoreError",
    "TransientStoreError",
    "StoreRejectedError",
]
