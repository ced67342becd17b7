"""CLI command for dry-run execution."""

import sys

import click

from spannerload.cli.commands import parse_cli_vars
from spannerload.core.batch import BatchAccumulator
from spannerload.core.exceptions import ConfigError, InputError
from spannerload.core.logging import configure_logging
from spannerload.core.records import FORMAT_EXTENSIONS, read_records
from spannerload.core.transformer import RecordTransformer
from spannerload.models.loader import load_sink_config


@click.command("dry-run")
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
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Log level (default: WARNING)",
)
@click.option(
    "--json-logs",
    is_flag=True,
    help="Use JSON format for logs",
)
def dry_run(
    config_path: str,
    input_path: str,
    input_format: str | None,
    vars: tuple,
    log_level: str,
    json_logs: bool,
):
    """Transform and batch INPUT_PATH without committing anything.

    Reports how many records would be rejected and how the valid ones
    would be split into batches.

    Examples:

        spannerload dry-run sink.yaml customers.jsonl
        spannerload dry-run sink.yaml customers.csv --vars env=prod
    """
    configure_logging(level=log_level, json_format=json_logs)

    try:
        config = load_sink_config(config_path, cli_vars=parse_cli_vars(vars))
        records = read_records(input_path, format=input_format, schema=config.table_schema)
    except ConfigError as e:
        click.echo(f"Config error: {e}", err=True)
        sys.exit(1)
    except InputError as e:
        click.echo(f"Input error: {e}", err=True)
        sys.exit(1)

    transformer = RecordTransformer(
        table=config.table,
        schema=config.table_schema,
        key_columns=config.key_columns,
        kind=config.operation,
    )
    accumulator = BatchAccumulator(
        max_operations=config.batching.max_operations,
        max_bytes=config.batching.max_bytes,
    )

    batches = []
    rejected = []
    total = 0
    for outcome in transformer.transform_all(records):
        total += 1
        if not outcome.ok:
            rejected.append(outcome)
            continue
        batch = accumulator.add(outcome.operation)
        if batch is not None:
            batches.append(batch)
    batch = accumulator.flush()
    if batch is not None:
        batches.append(batch)

    click.echo(f"Dry-run for sink: {config.name}")
    click.echo("")
    click.echo(f"✓ Read {total} records")
    click.echo(f"  Valid: {total - len(rejected)}")
    click.echo(f"  Rejected: {len(rejected)}")
    for outcome in rejected[:10]:
        click.echo(f"    - record {outcome.index}: {outcome.error}")
    click.echo("")
    click.echo(f"✓ Would commit {len(batches)} batches to {config.store.type}:{config.table}")
    for planned in batches:
        click.echo(
            f"  - {planned.batch_id}: {len(planned)} operations, ~{planned.size_bytes} bytes"
        )
    click.echo("")
    click.echo("Dry-run completed. Use 'spannerload run' to execute.")
