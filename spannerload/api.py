"""Public Python API for spannerload package.

This module provides the main entry points for loading sink configurations
and writing records.
"""

from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from spannerload.core.engine import SinkResult, execute
from spannerload.core.records import read_records
from spannerload.models.loader import load_sink_config
from spannerload.models.sink_config import SinkConfig
from spannerload.stores.base import Store


def from_yaml(path: str, cli_vars: Optional[dict[str, str]] = None) -> SinkConfig:
    """Load a sink configuration from a YAML file.

    Templates such as {{ env_var('SPANNER_INSTANCE') }} and {{ var('table') }}
    are rendered before validation.

    Args:
        path: Path to the sink YAML file
        cli_vars: Values for {{ var('...') }} templates

    Returns:
        Validated SinkConfig

    Raises:
        ConfigError: If the file is missing, invalid YAML, or fails validation

    Example:
        >>> config = from_yaml("sinks/customers.yaml")
        >>> print(config.table)
        customers
    """
    return load_sink_config(path, cli_vars=cli_vars)


def write_records(
    config: SinkConfig,
    records: Iterable[Mapping[str, Any]],
    store: Optional[Store] = None,
) -> SinkResult:
    """Transform, batch and commit records into the configured table.

    Args:
        config: Sink configuration
        records: Records to write, as mappings from field name to value
        store: Optional store instance; created from config.store when omitted

    Returns:
        SinkResult with committed and failed batches and rejected records

    Raises:
        EngineError: If the sink cannot be set up or stops on a failure

    Example:
        >>> from spannerload import from_yaml, write_records
        >>> config = from_yaml("sinks/customers.yaml")
        >>> result = write_records(config, [{"id": 1, "name": "a"}])
        >>> result.operations_written
        1
    """
    return execute(config, records, store=store)


def run_from_yaml(
    config_path: str,
    input_path: str | Path,
    input_format: Optional[str] = None,
    cli_vars: Optional[dict[str, str]] = None,
) -> SinkResult:
    """Load a sink configuration and write the records of an input file.

    Convenience function that combines `from_yaml()`, `read_records()` and
    `write_records()`.

    Raises:
        ConfigError: If configuration loading fails
        InputError: If the input file cannot be read
        EngineError: If the sink stops on a failure
    """
    config = from_yaml(config_path, cli_vars=cli_vars)
    records = read_records(input_path, format=input_format, schema=config.table_schema)
    return write_records(config, records)
