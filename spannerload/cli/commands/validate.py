"""CLI command for validating sink configurations."""

import sys

import click

from spannerload.cli.commands import parse_cli_vars
from spannerload.core.exceptions import ConfigError
from spannerload.models.loader import load_sink_config


@click.command()
@click.argument("config_path", type=click.Path(exists=True))
@click.option(
    "--vars",
    multiple=True,
    help="CLI variables in key=value format (can be used multiple times)",
)
def validate(config_path: str, vars: tuple):
    """Validate a sink YAML file.

    Checks:
    - YAML syntax
    - Template variable resolution
    - Schema and key column validation
    - Store configuration

    Examples:

        spannerload validate sink.yaml
        spannerload validate sink.yaml --vars table=customers
    """
    try:
        config = load_sink_config(config_path, cli_vars=parse_cli_vars(vars))
    except ConfigError as e:
        click.echo(f"✗ Sink validation failed: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Sink '{config.name}' is valid")
    click.echo(f"  Table: {config.table} ({config.operation.value})")
    click.echo(f"  Key columns: {', '.join(config.key_columns)}")
    click.echo(f"  Fields: {len(config.table_schema.fields)}")
    click.echo(f"  Store: {config.store.type}")
    click.echo(
        f"  Batching: {config.batching.max_operations} operations / "
        f"{config.batching.max_bytes} bytes"
    )
    click.echo(f"  Parallelism: {config.parallelism}")
