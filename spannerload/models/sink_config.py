"""Sink configuration models."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from spannerload.core.mutation import OperationKind
from spannerload.core.schema import Schema


class BatchingConfig(BaseModel):
    """Bounds applied by the batch accumulator."""

    max_operations: int = Field(
        default=100, description="Maximum number of operations per batch", gt=0
    )
    max_bytes: int = Field(
        default=4 * 1024 * 1024,
        description="Maximum estimated serialized size of a batch in bytes",
        gt=0,
    )


class RetryConfig(BaseModel):
    """Commit retry policy."""

    max_retries: int = Field(
        default=3, description="Retries allowed after the first commit attempt", ge=0
    )
    retry_delay: float = Field(
        default=1.0, description="Delay before the first retry in seconds", ge=0.0
    )
    backoff_rate: float = Field(
        default=2.0,
        description="Exponential backoff multiplier for retry_delay (e.g., 1.0s, 2.0s, 4.0s)",
        ge=1.0,
    )
    max_delay: float = Field(
        default=30.0, description="Upper bound for a single retry delay in seconds", ge=0.0
    )
    commit_timeout: Optional[float] = Field(
        default=60.0,
        description="Timeout for one commit attempt in seconds (None disables it)",
        gt=0.0,
    )


class StoreConfig(BaseModel):
    """Configuration of the target store."""

    type: str = Field(description="Store type (e.g., 'memory', 'duckdb', 'spanner')")
    database: Optional[str] = Field(
        default=None,
        description="Database id (spanner) or file path / ':memory:' (duckdb)",
    )
    project: Optional[str] = Field(default=None, description="Cloud project id (spanner)")
    instance: Optional[str] = Field(default=None, description="Instance id (spanner)")
    create_table: bool = Field(
        default=True, description="Create the target table when missing (duckdb)"
    )

    @model_validator(mode="after")
    def validate_fields(self):
        """Validate required fields per store type."""
        required: list[str] = []
        if self.type == "duckdb":
            required = ["database"]
        elif self.type == "spanner":
            required = ["project", "instance", "database"]
        missing = [f for f in required if not getattr(self, f)]
        if missing:
            raise ValueError(
                f"Store type '{self.type}' requires fields: {', '.join(missing)}"
            )
        return self


class SinkConfig(BaseModel):
    """Complete configuration of one sink."""

    model_config = ConfigDict(protected_namespaces=(), populate_by_name=True)

    name: str = Field(description="Sink name used in logs and metrics")
    table: str = Field(description="Target table name")
    key_columns: list[str] = Field(
        description="Primary-key columns, in key order", min_length=1
    )
    operation: OperationKind = Field(
        default=OperationKind.INSERT, description="Kind of write emitted per record"
    )
    table_schema: Schema = Field(alias="schema", description="Schema of incoming records")
    batching: BatchingConfig = Field(default_factory=BatchingConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    store: StoreConfig = Field(default_factory=lambda: StoreConfig(type="memory"))
    parallelism: int = Field(
        default=1, description="Number of concurrent workers (1 = sequential)", ge=1
    )
    on_record_error: Literal["skip", "fail"] = Field(
        default="skip", description="Skip and report invalid records, or stop"
    )
    on_batch_failure: Literal["fail", "continue"] = Field(
        default="fail", description="Stop on the first failed batch, or keep going"
    )

    @field_validator("table_schema", mode="before")
    @classmethod
    def accept_field_list(cls, v: Any) -> Any:
        """Allow the schema to be written as a plain list of fields."""
        if isinstance(v, list):
            return {"fields": v}
        return v

    @model_validator(mode="after")
    def validate_key_columns(self):
        """Key columns must be unique and part of the schema."""
        if len(set(self.key_columns)) != len(self.key_columns):
            raise ValueError("key_columns must not contain duplicates")
        missing = [c for c in self.key_columns if self.table_schema.get_field(c) is None]
        if missing:
            raise ValueError(f"key_columns not found in schema: {', '.join(missing)}")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "SinkConfig":
        return cls(**data)
