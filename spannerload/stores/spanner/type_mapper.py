"""Type mapper for the Cloud Spanner store."""

from spannerload.core.schema import FieldType, SchemaField

SPANNER_TYPE_MAP: dict[FieldType, str] = {
    FieldType.BOOL: "BOOL",
    FieldType.INT32: "INT64",
    FieldType.INT64: "INT64",
    FieldType.FLOAT: "FLOAT32",
    FieldType.DOUBLE: "FLOAT64",
    FieldType.NUMERIC: "NUMERIC",
    FieldType.STRING: "STRING(MAX)",
    FieldType.BYTES: "BYTES(MAX)",
    FieldType.TIMESTAMP: "TIMESTAMP",
    FieldType.DATE: "DATE",
}


class SpannerTypeMapper:
    """Maps schema fields to Spanner (GoogleSQL dialect) column types."""

    def field_to_connector_type(self, field: SchemaField) -> str:
        """Map a schema field to a Spanner type string.

        Raises:
            ValueError: For RECORD fields and nested arrays, which Spanner
                tables cannot store
        """
        if field.type == FieldType.ARRAY:
            if field.element.type in (FieldType.ARRAY, FieldType.RECORD):
                raise ValueError(
                    f"Spanner columns cannot hold {field.type_name} (field '{field.name}')"
                )
            return f"ARRAY<{self.field_to_connector_type(field.element)}>"
        if field.type == FieldType.RECORD:
            raise ValueError(f"Spanner columns cannot hold RECORD (field '{field.name}')")
        return SPANNER_TYPE_MAP[field.type]
