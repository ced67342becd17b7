"""CLI command for running a sink over an input file."""

import sys

import click

from spannerload.api import write_records
from spannerload.cli.commands import parse_cli_vars
from spannerload.core.exceptions import ConfigError, EngineError, InputError
from spannerload.core.logging import configure_logging
from spannerload.core.records import FORMAT_EXTENSIONS, read_records
from spannerload.models.loader import load_sink_config


@click.command()
@click.argument("config_path", type=click.Path(exists=True))
@click.argument("input_path", type=click.Path(exists=True))
@click.option(
    "--format",
    "input_format",
    type=click.Choice(sorted(FORMAT_EXTENSIONS)),
    help="Input format (default: inferred from the file extension)",
)
@click.option(
    "--vars",
    multiple=True,
    help="CLI variables in key=value format (can be used multiple times)",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Log level (default: INFO)",
)
@click.option(
    "--json-logs",
    is_flag=True,
    help="Use JSON format for logs",
)
def run(
    config_path: str,
    input_path: str,
    input_format: str | None,
    vars: tuple,
    log_level: str,
    json_logs: bool,
):
    """Write the records of INPUT_PATH through the sink in CONFIG_PATH.

    Examples:

        spannerload run sink.yaml customers.jsonl
        spannerload run sink.yaml customers.csv --vars instance=prod
        spannerload run sink.yaml data.bin --format parquet --log-level DEBUG
    """
    try:
        config = load_sink_config(config_path, cli_vars=parse_cli_vars(vars))
    except ConfigError as e:
        click.echo(f"Config error: {e}", err=True)
        sys.exit(1)

    configure_logging(level=log_level, json_format=json_logs, sink_name=config.name)

    try:
        records = read_records(input_path, format=input_format, schema=config.table_schema)
        click.echo(f"Running sink: {config.name}")
        result = write_records(config, records)
    except InputError as e:
        click.echo(f"Input error: {e}", err=True)
        sys.exit(1)
    except EngineError as e:
        click.echo(f"Execution error: {e}", err=True)
        sys.exit(1)

    click.echo(f"  Records received: {result.records_received}")
    click.echo(f"  Operations written: {result.operations_written}")
    click.echo(f"  Batches committed: {len(result.committed_batches)}")
    if result.rejected_records:
        click.echo(f"  Records rejected: {len(result.rejected_records)}")
        for rejection in result.rejected_records[:10]:
            click.echo(f"    - record {rejection.record_index}: {rejection.message}")
    if result.failed_batches:
        click.echo(f"  Batches failed: {len(result.failed_batches)}", err=True)
        for failed in result.failed_batches:
            reason = failed.failure.reason if failed.failure else "unknown"
            click.echo(f"    - {failed.batch_id}: {reason}", err=True)
        sys.exit(1)
    click.echo("Sink run completed successfully")
