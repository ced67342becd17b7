"""Record sources: Arrow tables and JSON Lines / Parquet / CSV files.

Files are read with pyarrow and turned into plain dictionaries, one per
row. When a schema is given, scalar columns are cast to the schema's Arrow
types first so that e.g. ISO timestamps arrive as datetimes. Columns that
cannot be cast are left as read; the field mapper then rejects the
offending records individually.
"""

import logging
from pathlib import Path
from typing import Any, Iterator, Optional

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.csv as pa_csv
import pyarrow.json as pa_json
import pyarrow.parquet as pq

from spannerload.core.exceptions import InputError
from spannerload.core.schema import FieldType, Schema
from spannerload.core.type_mapping import field_to_arrow_type

logger = logging.getLogger(__name__)

FORMAT_EXTENSIONS: dict[str, list[str]] = {
    "jsonl": [".jsonl", ".ndjson", ".json"],
    "parquet": [".parquet", ".pq"],
    "csv": [".csv"],
}

_NESTED_TYPES = (FieldType.ARRAY, FieldType.RECORD)

# pc.cast to float32 rounds without a precision check; FLOAT values reach
# the field mapper unconverted.
_UNCAST_TYPES = _NESTED_TYPES + (FieldType.FLOAT,)


def infer_format(path: str | Path) -> str:
    """Infer the input format from a file extension.

    Raises:
        InputError: If the extension is not recognised
    """
    suffix = Path(path).suffix.lower()
    for fmt, extensions in FORMAT_EXTENSIONS.items():
        if suffix in extensions:
            return fmt
    raise InputError(
        f"Cannot infer input format from '{suffix or path}'",
        context={"supported": ", ".join(FORMAT_EXTENSIONS)},
    )


def read_table(path: str | Path, format: Optional[str] = None) -> pa.Table:
    """Read a whole input file into an Arrow table.

    Raises:
        InputError: If the file is missing, unreadable or of unknown format
    """
    fmt = format or infer_format(path)
    if fmt not in FORMAT_EXTENSIONS:
        raise InputError(f"Unsupported input format: {fmt}")
    if not Path(path).exists():
        raise InputError(f"Input file not found: {path}")

    try:
        if fmt == "jsonl":
            return pa_json.read_json(str(path))
        if fmt == "parquet":
            return pq.read_table(str(path))
        return pa_csv.read_csv(str(path))
    except (pa.ArrowException, OSError) as e:
        raise InputError(f"Failed to read {fmt} input: {e}", context={"path": str(path)}) from e


def align_to_schema(table: pa.Table, schema: Schema) -> pa.Table:
    """Cast top-level scalar columns to the schema's Arrow types where possible.

    Nested and FLOAT columns are left as read.
    """
    for field in schema.fields:
        if field.type in _UNCAST_TYPES or field.name not in table.column_names:
            continue
        target = field_to_arrow_type(field)
        index = table.column_names.index(field.name)
        column = table.column(index)
        if column.type == target:
            continue
        try:
            cast = pc.cast(column, target, safe=True)
        except (pa.ArrowInvalid, pa.ArrowNotImplementedError) as e:
            logger.warning(f"Column '{field.name}' kept as {column.type}: {e}")
            continue
        table = table.set_column(index, pa.field(field.name, target), cast)
    return table


def records_from_arrow(
    data: pa.Table | pa.RecordBatch, batch_size: int = 10_000
) -> Iterator[dict[str, Any]]:
    """Yield each row of an Arrow table or record batch as a dictionary."""
    if isinstance(data, pa.RecordBatch):
        yield from data.to_pylist()
        return
    for batch in data.to_batches(max_chunksize=batch_size):
        yield from batch.to_pylist()


def read_records(
    path: str | Path,
    format: Optional[str] = None,
    schema: Optional[Schema] = None,
) -> Iterator[dict[str, Any]]:
    """Read records from a JSON Lines, Parquet or CSV file.

    Args:
        path: Input file path
        format: One of "jsonl", "parquet", "csv"; inferred from the
                extension when omitted
        schema: Optional schema used to align column types

    Raises:
        InputError: If the file cannot be read
    """
    table = read_table(path, format)
    if schema is not None:
        table = align_to_schema(table, schema)
    logger.debug(f"Read {table.num_rows} rows from {path}")
    return records_from_arrow(table)
