"""Shared type mapping utilities between schema fields and Arrow types.

Stores implement the TypeMapper protocol to render field types in their
own DDL dialect.
"""

from typing import Protocol

import pyarrow as pa

from spannerload.core.schema import FieldType, SchemaField

NUMERIC_PRECISION = 38
NUMERIC_SCALE = 9

FIELD_TYPE_TO_ARROW: dict[FieldType, pa.DataType] = {
    FieldType.BOOL: pa.bool_(),
    FieldType.INT32: pa.int32(),
    FieldType.INT64: pa.int64(),
    FieldType.FLOAT: pa.float32(),
    FieldType.DOUBLE: pa.float64(),
    FieldType.NUMERIC: pa.decimal128(NUMERIC_PRECISION, NUMERIC_SCALE),
    FieldType.STRING: pa.string(),
    FieldType.BYTES: pa.binary(),
    FieldType.TIMESTAMP: pa.timestamp("us", tz="UTC"),
    FieldType.DATE: pa.date32(),
}


def field_to_arrow_type(field: SchemaField) -> pa.DataType:
    """Convert a schema field to its Arrow type, recursing into ARRAY/RECORD."""
    if field.type == FieldType.ARRAY:
        element = field.element
        return pa.list_(
            pa.field("element", field_to_arrow_type(element), nullable=element.nullable)
        )
    if field.type == FieldType.RECORD:
        return pa.struct(
            [
                pa.field(f.name, field_to_arrow_type(f), nullable=f.nullable)
                for f in field.fields
            ]
        )
    return FIELD_TYPE_TO_ARROW[field.type]


def arrow_to_field(name: str, arrow_type: pa.DataType, nullable: bool = True) -> SchemaField:
    """Convert an Arrow type to a schema field.

    Raises:
        ValueError: If the Arrow type has no field type equivalent
    """
    if pa.types.is_boolean(arrow_type):
        field_type = FieldType.BOOL
    elif pa.types.is_int8(arrow_type) or pa.types.is_int16(arrow_type) or pa.types.is_int32(arrow_type):
        field_type = FieldType.INT32
    elif pa.types.is_uint8(arrow_type) or pa.types.is_uint16(arrow_type):
        field_type = FieldType.INT32
    elif pa.types.is_integer(arrow_type):
        field_type = FieldType.INT64
    elif pa.types.is_float16(arrow_type) or pa.types.is_float32(arrow_type):
        field_type = FieldType.FLOAT
    elif pa.types.is_float64(arrow_type):
        field_type = FieldType.DOUBLE
    elif pa.types.is_decimal(arrow_type):
        field_type = FieldType.NUMERIC
    elif pa.types.is_string(arrow_type) or pa.types.is_large_string(arrow_type):
        field_type = FieldType.STRING
    elif (
        pa.types.is_binary(arrow_type)
        or pa.types.is_large_binary(arrow_type)
        or pa.types.is_fixed_size_binary(arrow_type)
    ):
        field_type = FieldType.BYTES
    elif pa.types.is_timestamp(arrow_type):
        field_type = FieldType.TIMESTAMP
    elif pa.types.is_date(arrow_type):
        field_type = FieldType.DATE
    elif pa.types.is_list(arrow_type) or pa.types.is_large_list(arrow_type):
        value_field = arrow_type.value_field
        element = arrow_to_field("element", value_field.type, nullable=value_field.nullable)
        return SchemaField(name=name, type=FieldType.ARRAY, nullable=nullable, element=element)
    elif pa.types.is_struct(arrow_type):
        nested = [
            arrow_to_field(arrow_type.field(i).name, arrow_type.field(i).type, arrow_type.field(i).nullable)
            for i in range(arrow_type.num_fields)
        ]
        return SchemaField(name=name, type=FieldType.RECORD, nullable=nullable, fields=nested)
    else:
        raise ValueError(f"Unsupported Arrow type for field '{name}': {arrow_type}")

    return SchemaField(name=name, type=field_type, nullable=nullable)


class TypeMapper(Protocol):
    """Protocol for store-specific type mapping.

    Stores implement this protocol to render schema fields as column types
    in their DDL dialect.
    """

    def field_to_connector_type(self, field: SchemaField) -> str:
        """Map a schema field to a store-specific column type string.

        Args:
            field: Schema field definition

        Returns:
            Store-specific type string (e.g., "INT64", "STRING(MAX)")
        """
        ...
