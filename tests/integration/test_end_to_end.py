"""End-to-end integration tests for complete sink runs."""

import csv
import json

import duckdb
import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from spannerload import from_yaml, run_from_yaml, write_records
from spannerload.core.exceptions import EngineError

SINK_TEMPLATE = """
name: customers_sink
table: customers
key_columns: [id]
operation: {operation}
schema:
  - {{name: id, type: INT64, nullable: false}}
  - {{name: name, type: STRING}}
  - {{name: score, type: DOUBLE}}
batching:
  max_operations: 2
retry:
  max_retries: 1
  retry_delay: 0.0
store:
  type: duckdb
  database: "{database}"
parallelism: {parallelism}
on_batch_failure: {on_batch_failure}
"""


def write_sink(temp_dir, operation="insert", parallelism=1, on_batch_failure="fail"):
    path = temp_dir / "sink.yaml"
    path.write_text(
        SINK_TEMPLATE.format(
            operation=operation,
            database=temp_dir / "output.duckdb",
            parallelism=parallelism,
            on_batch_failure=on_batch_failure,
        )
    )
    return path


def fetch_rows(temp_dir):
    conn = duckdb.connect(str(temp_dir / "output.duckdb"))
    try:
        return conn.execute("SELECT id, name, score FROM customers ORDER BY id").fetchall()
    finally:
        conn.close()


@pytest.mark.integration
class TestEndToEndSinks:
    """End-to-end tests: YAML sink file + input file -> DuckDB table."""

    def test_jsonl_to_duckdb(self, temp_dir):
        input_path = temp_dir / "customers.jsonl"
        rows = [
            {"id": 1, "name": "Alice", "score": 10.5},
            {"id": 2, "name": "Bob", "score": 20},
            {"id": 3, "name": None, "score": None},
            {"name": "no key", "score": 1.0},
            {"id": 4, "name": "Dana", "score": 40.25},
        ]
        input_path.write_text("\n".join(json.dumps(r) for r in rows) + "\n")

        result = run_from_yaml(str(write_sink(temp_dir)), input_path)

        assert result.ok
        assert result.records_received == 5
        assert result.operations_written == 4
        assert len(result.committed_batches) == 2
        assert [r.record_index for r in result.rejected_records] == [3]
        assert result.rejected_records[0].field == "id"
        assert fetch_rows(temp_dir) == [
            (1, "Alice", 10.5),
            (2, "Bob", 20.0),
            (3, None, None),
            (4, "Dana", 40.25),
        ]

    def test_csv_to_duckdb(self, temp_dir):
        input_path = temp_dir / "customers.csv"
        with open(input_path, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(["id", "name", "score"])
            writer.writerow([1, "Alice", 10.5])
            writer.writerow([2, "Bob", 20.3])
            writer.writerow([3, "Charlie", 30.7])

        result = run_from_yaml(str(write_sink(temp_dir)), input_path)

        assert result.ok
        assert result.operations_written == 3
        assert fetch_rows(temp_dir) == [
            (1, "Alice", 10.5),
            (2, "Bob", 20.3),
            (3, "Charlie", 30.7),
        ]

    def test_parquet_parallel_upsert(self, temp_dir):
        input_path = temp_dir / "customers.parquet"
        pq.write_table(
            pa.table(
                {
                    "id": list(range(1, 21)),
                    "name": [f"user{i}" for i in range(1, 21)],
                    "score": [float(i) for i in range(1, 21)],
                }
            ),
            input_path,
        )
        sink_path = str(write_sink(temp_dir, operation="insert_or_update", parallelism=3))

        first = run_from_yaml(sink_path, input_path)
        second = run_from_yaml(sink_path, input_path)

        assert first.operations_written == 20
        assert second.operations_written == 20
        rows = fetch_rows(temp_dir)
        assert len(rows) == 20
        assert rows[0] == (1, "user1", 1.0)
        assert rows[-1] == (20, "user20", 20.0)

    def test_duplicate_keys_stop_the_run(self, temp_dir):
        config = from_yaml(str(write_sink(temp_dir)))
        records = [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}, {"id": 2, "name": "dup"}]

        with pytest.raises(EngineError, match="failed") as exc_info:
            write_records(config, records + [{"id": 3, "name": "c"}])

        partial = exc_info.value.result
        assert partial.operations_written == 2
        assert len(partial.failed_batches) == 1
        assert fetch_rows(temp_dir) == [(1, "a", None), (2, "b", None)]

    def test_continue_on_batch_failure(self, temp_dir):
        config = from_yaml(str(write_sink(temp_dir, on_batch_failure="continue")))
        records = [
            {"id": 1, "name": "a"},
            {"id": 2, "name": "b"},
            {"id": 1, "name": "dup"},
            {"id": 3, "name": "c"},
            {"id": 4, "name": "d"},
        ]

        result = write_records(config, records)

        assert not result.ok
        assert result.operations_written == 3
        assert len(result.committed_batches) == 2
        assert len(result.failed_batches) == 1
        failure = result.failed_batches[0].failure
        assert "DuckDB rejected operation" in failure.reason
        assert failure.operation_index == 0
        assert [row[0] for row in fetch_rows(temp_dir)] == [1, 2, 4]

    def test_template_variables(self, temp_dir, monkeypatch):
        monkeypatch.setenv("SINK_DB", str(temp_dir / "output.duckdb"))
        sink_path = temp_dir / "templated.yaml"
        sink_path.write_text(
            """
name: "{{ var('table') }}_sink"
table: "{{ var('table') }}"
key_columns: [id]
schema:
  - {name: id, type: INT64, nullable: false}
  - {name: name, type: STRING}
  - {name: score, type: DOUBLE}
store:
  type: duckdb
  database: "{{ env_var('SINK_DB') }}"
"""
        )

        config = from_yaml(str(sink_path), cli_vars={"table": "customers"})
        result = write_records(config, [{"id": 7, "name": "x", "score": 1.5}])

        assert config.name == "customers_sink"
        assert result.operations_written == 1
        assert fetch_rows(temp_dir) == [(7, "x", 1.5)]
