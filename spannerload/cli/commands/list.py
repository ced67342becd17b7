"""CLI command for listing available stores."""

import click

from spannerload.stores import list_store_types


@click.command("list-stores")
def list_stores():
    """List available stores.

    Shows all registered store types that sinks can write to.
    """
    click.echo("Available Stores:")
    for store_type in sorted(list_store_types()):
        click.echo(f"  - {store_type}")
