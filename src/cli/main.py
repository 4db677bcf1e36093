"""CLI entry point for the brain store."""

import sys

import click
from rich.markup import escape

from cli.commands import (
    add,
    learn,
    list_entries,
    migrate,
    prefer,
    prompt,
    remove,
    search,
    show,
    status,
    task,
)
from cli.config import load_config_model
from cli.logging_config import setup_logging
from cli.utils import console


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """Brain - append-only memory for a personal agent."""
    try:
        config = load_config_model()
    except ValueError as e:
        console.print(f"[red]Config error:[/] {escape(str(e))}")
        sys.exit(1)
    level = "DEBUG" if verbose else config.logging.level
    setup_logging(json_mode=config.logging.json_mode, level=level, log_file=config.paths.log_file)


cli.add_command(status)
cli.add_command(list_entries)
cli.add_command(show)
cli.add_command(add)
cli.add_command(learn)
cli.add_command(prefer)
cli.add_command(remove)
cli.add_command(search)
cli.add_command(prompt)
cli.add_command(migrate)
cli.add_command(task)


if __name__ == "__main__":
    cli()
