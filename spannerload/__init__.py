"""spannerload - batch sink for transactional, Spanner-like stores.

Converts generic records into typed write operations, groups them into
size-bounded batches, and commits each batch as one atomic transaction
with retries on transient failures.
"""

__version__ = "0.1.0"

# Public API
from spannerload.api import from_yaml, run_from_yaml, write_records

# Core classes
from spannerload.core.batch import Batch, BatchAccumulator
from spannerload.core.committer import BatchCommitter, CommitResult
from spannerload.core.engine import SinkContext, SinkResult, execute, setup, teardown, write

# Exceptions
from spannerload.core.exceptions import (
    CommitError,
    ConfigError,
    EngineError,
    InputError,
    RecordError,
    SpannerLoadError,
    StoreError,
)
from spannerload.core.mutation import OperationKind, WriteOperation
from spannerload.core.schema import Schema, SchemaField
from spannerload.core.transformer import RecordTransformer

# Config models
from spannerload.models.sink_config import SinkConfig

__all__ = [
    # Version
    "__version__",
    # Public API
    "from_yaml",
    "write_records",
    "run_from_yaml",
    # Runner
    "setup",
    "write",
    "teardown",
    "execute",
    "SinkContext",
    "SinkResult",
    # Core classes
    "SinkConfig",
    "Schema",
    "SchemaField",
    "OperationKind",
    "WriteOperation",
    "RecordTransformer",
    "Batch",
    "BatchAccumulator",
    "BatchCommitter",
    "CommitResult",
    # Exceptions
    "SpannerLoadError",
    "ConfigError",
    "InputError",
    "RecordError",
    "CommitError",
    "StoreError",
    "EngineError",
]
