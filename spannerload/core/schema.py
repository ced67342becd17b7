"""Schema models describing the columns of a target table.

A resolved Schema is immutable and shared by the record transformer and the
stores. Field types follow the Spanner type system; ARRAY and RECORD fields
carry their element/nested field definitions.
"""

import re
from enum import Enum
from typing import Any, Optional

import pyarrow as pa
from pydantic import BaseModel, ConfigDict, Field, model_validator


class FieldType(str, Enum):
    """Column types understood by the field mapper."""

    BOOL = "BOOL"
    INT32 = "INT32"
    INT64 = "INT64"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    NUMERIC = "NUMERIC"
    STRING = "STRING"
    BYTES = "BYTES"
    TIMESTAMP = "TIMESTAMP"
    DATE = "DATE"
    ARRAY = "ARRAY"
    RECORD = "RECORD"


TYPE_ALIASES: dict[str, FieldType] = {
    "BOOLEAN": FieldType.BOOL,
    "INT": FieldType.INT32,
    "INTEGER": FieldType.INT32,
    "LONG": FieldType.INT64,
    "BIGINT": FieldType.INT64,
    "FLOAT32": FieldType.FLOAT,
    "FLOAT64": FieldType.DOUBLE,
    "DECIMAL": FieldType.NUMERIC,
    "STR": FieldType.STRING,
    "DATETIME": FieldType.TIMESTAMP,
    "STRUCT": FieldType.RECORD,
}

_ARRAY_PATTERN = re.compile(r"^ARRAY\s*<\s*(.+?)\s*>$", re.IGNORECASE)


def parse_type_name(type_name: str) -> FieldType:
    """Resolve a scalar type name (case-insensitive, aliases allowed).

    Raises:
        ValueError: If the name is not a known type
    """
    upper = type_name.strip().upper()
    if upper in TYPE_ALIASES:
        return TYPE_ALIASES[upper]
    try:
        return FieldType(upper)
    except ValueError:
        supported = sorted({t.value for t in FieldType} | set(TYPE_ALIASES))
        raise ValueError(
            f"Unsupported type name: {type_name}. Supported types: {supported}"
        ) from None


class SchemaField(BaseModel):
    """Definition of a single column (or nested field)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Field name")
    type: FieldType = Field(description="Field type (e.g. 'INT64', 'ARRAY<STRING>')")
    nullable: bool = Field(default=True, description="Whether the field accepts NULL")
    element: Optional["SchemaField"] = Field(
        default=None, description="Element definition for ARRAY fields"
    )
    fields: Optional[tuple["SchemaField", ...]] = Field(
        default=None, description="Nested field definitions for RECORD fields"
    )

    @model_validator(mode="before")
    @classmethod
    def expand_type_name(cls, data: Any) -> Any:
        """Accept 'ARRAY<T>' and aliased type names as input."""
        if not isinstance(data, dict) or not isinstance(data.get("type"), str):
            return data
        type_name = data["type"].strip()
        match = _ARRAY_PATTERN.match(type_name)
        if match:
            data = {**data, "type": FieldType.ARRAY}
            if data.get("element") is None:
                data["element"] = {"name": "element", "type": match.group(1)}
            return data
        return {**data, "type": parse_type_name(type_name)}

    @model_validator(mode="after")
    def validate_nested(self):
        """ARRAY needs an element definition, RECORD needs nested fields."""
        if self.type == FieldType.ARRAY and self.element is None:
            raise ValueError(f"ARRAY field '{self.name}' requires an element definition")
        if self.type == FieldType.RECORD:
            if not self.fields:
                raise ValueError(f"RECORD field '{self.name}' requires nested fields")
            _check_unique([f.name for f in self.fields], f"RECORD field '{self.name}'")
        return self

    @property
    def type_name(self) -> str:
        """Render the type as written in configs, e.g. 'ARRAY<INT64>'."""
        if self.type == FieldType.ARRAY and self.element is not None:
            return f"ARRAY<{self.element.type_name}>"
        return self.type.value


class Schema(BaseModel):
    """Ordered, immutable column definitions for one target table."""

    model_config = ConfigDict(frozen=True)

    fields: tuple[SchemaField, ...] = Field(description="Ordered field definitions")

    @model_validator(mode="after")
    def validate_fields(self):
        if not self.fields:
            raise ValueError("schema must define at least one field")
        _check_unique(self.field_names(), "schema")
        return self

    def get_field(self, name: str) -> Optional[SchemaField]:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def field_names(self) -> list[str]:
        return [field.name for field in self.fields]

    def to_arrow_schema(self) -> pa.Schema:
        from spannerload.core.type_mapping import field_to_arrow_type

        return pa.schema(
            [
                pa.field(f.name, field_to_arrow_type(f), nullable=f.nullable)
                for f in self.fields
            ]
        )

    @classmethod
    def from_arrow_schema(cls, arrow_schema: pa.Schema) -> "Schema":
        from spannerload.core.type_mapping import arrow_to_field

        return cls(
            fields=[
                arrow_to_field(f.name, f.type, nullable=f.nullable)
                for f in arrow_schema
            ]
        )

    @classmethod
    def from_dict(cls, fields: list[dict[str, Any]]) -> "Schema":
        """Build a schema from a list of field dictionaries (as found in configs)."""
        return cls(fields=fields)


def _check_unique(names: list[str], where: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ValueError(f"duplicate field name '{name}' in {where}")
        seen.add(name)


SchemaField.model_rebuild()
