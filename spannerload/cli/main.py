"""Main CLI entry point for spannerload."""

import click

from spannerload import __version__
from spannerload.cli.commands.dry_run import dry_run
from spannerload.cli.commands.list import list_stores
from spannerload.cli.commands.run import run
from spannerload.cli.commands.validate import validate


@click.group()
@click.version_option(version=__version__)
def main():
    """spannerload - batch sink for transactional stores."""
    pass


# Register commands
main.add_command(run)
main.add_command(validate)
main.add_command(dry_run)
main.add_command(list_stores)


if __name__ == "__main__":
    main()
