"""Tests for the spannerload CLI."""

import json

import duckdb
import pytest
from click.testing import CliRunner

from spannerload import __version__
from spannerload.cli.main import main

SINK_YAML = """
name: people_sink
table: people
key_columns: [id]
schema:
  - {{name: id, type: INT64, nullable: false}}
  - {{name: name, type: STRING}}
batching:
  max_operations: 2
retry:
  max_retries: 0
store:
  type: duckdb
  database: "{database}"
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def sink_file(config_dir, temp_dir):
    path = config_dir / "people.yaml"
    path.write_text(SINK_YAML.format(database=temp_dir / "people.duckdb"))
    return path


@pytest.fixture
def input_file(temp_dir):
    path = temp_dir / "people.jsonl"
    rows = [{"id": 1, "name": "a"}, {"id": 2, "name": None}, {"name": "c"}]
    path.write_text("\n".join(json.dumps(row) for row in rows) + "\n")
    return path


class TestCLI:
    """Tests for CLI commands."""

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_list_stores(self, runner):
        """Test list-stores shows the built-in stores."""
        result = runner.invoke(main, ["list-stores"])
        assert result.exit_code == 0
        for store_type in ["duckdb", "memory", "spanner"]:
            assert f"- {store_type}" in result.output

    def test_validate(self, runner, sink_file):
        """Test validate on a correct sink file."""
        result = runner.invoke(main, ["validate", str(sink_file)])
        assert result.exit_code == 0
        assert "Sink 'people_sink' is valid" in result.output
        assert "Key columns: id" in result.output
        assert "Store: duckdb" in result.output

    def test_validate_invalid(self, runner, config_dir):
        """Test validate reports configuration errors."""
        bad = config_dir / "bad.yaml"
        bad.write_text("name: x\ntable: t\nkey_columns: [id]\nschema: []\n")
        result = runner.invoke(main, ["validate", str(bad)])
        assert result.exit_code == 1
        assert "Sink validation failed" in result.output

    def test_validate_bad_vars(self, runner, sink_file):
        result = runner.invoke(main, ["validate", str(sink_file), "--vars", "novalue"])
        assert result.exit_code != 0
        assert "Use key=value" in result.output

    def test_dry_run(self, runner, sink_file, input_file, temp_dir):
        """Test dry-run plans batches without writing."""
        result = runner.invoke(main, ["dry-run", str(sink_file), str(input_file)])
        assert result.exit_code == 0, result.output
        assert "Read 3 records" in result.output
        assert "Rejected: 1" in result.output
        assert "Would commit 1 batches" in result.output
        assert not (temp_dir / "people.duckdb").exists()

    def test_run(self, runner, sink_file, input_file, temp_dir):
        """Test run writes valid records and reports rejections."""
        result = runner.invoke(main, ["run", str(sink_file), str(input_file)])
        assert result.exit_code == 0, result.output
        assert "Operations written: 2" in result.output
        assert "Records rejected: 1" in result.output
        assert "record 2" in result.output

        conn = duckdb.connect(str(temp_dir / "people.duckdb"))
        try:
            rows = conn.execute("SELECT id, name FROM people ORDER BY id").fetchall()
        finally:
            conn.close()
        assert rows == [(1, "a"), (2, None)]

    def test_run_failed_batch_exits_nonzero(self, runner, sink_file, input_file):
        """Test a second run fails on primary-key conflicts."""
        first = runner.invoke(main, ["run", str(sink_file), str(input_file)])
        assert first.exit_code == 0, first.output

        second = runner.invoke(main, ["run", str(sink_file), str(input_file)])
        assert second.exit_code == 1
        assert "Execution error" in second.output

    def test_run_unknown_format(self, runner, sink_file, temp_dir):
        data = temp_dir / "people.xlsx"
        data.write_text("")
        result = runner.invoke(main, ["run", str(sink_file), str(data)])
        assert result.exit_code == 1
        assert "Input error" in result.output
