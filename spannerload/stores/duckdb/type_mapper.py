"""Type mapper for the DuckDB store."""

from spannerload.core.schema import FieldType, SchemaField
from spannerload.core.type_mapping import NUMERIC_PRECISION, NUMERIC_SCALE

DUCKDB_TYPE_MAP: dict[FieldType, str] = {
    FieldType.BOOL: "BOOLEAN",
    FieldType.INT32: "INTEGER",
    FieldType.INT64: "BIGINT",
    FieldType.FLOAT: "FLOAT",
    FieldType.DOUBLE: "DOUBLE",
    FieldType.NUMERIC: f"DECIMAL({NUMERIC_PRECISION}, {NUMERIC_SCALE})",
    FieldType.STRING: "VARCHAR",
    FieldType.BYTES: "BLOB",
    FieldType.TIMESTAMP: "TIMESTAMP",
    FieldType.DATE: "DATE",
}


class DuckDBTypeMapper:
    """Maps schema fields to DuckDB column types for table creation.

    TIMESTAMP columns hold UTC wall-clock values; the store converts
    timezone-aware datetimes before binding them.
    """

    def field_to_connector_type(self, field: SchemaField) -> str:
        """Map a schema field to a DuckDB type string.

        Args:
            field: Schema field definition

        Returns:
            DuckDB type string (e.g., "BIGINT", "VARCHAR[]", "STRUCT(...)")
        """
        if field.type == FieldType.ARRAY:
            return f"{self.field_to_connector_type(field.element)}[]"
        if field.type == FieldType.RECORD:
            members = ", ".join(
                f'"{nested.name}" {self.field_to_connector_type(nested)}'
                for nested in field.fields
            )
            return f"STRUCT({members})"
        return DUCKDB_TYPE_MAP[field.type]
