"""Shared CLI utilities."""

import sys

import click
from rich.console import Console
from rich.markup import escape

console = Console()


def get_components():
    """Resolve config into the paths and knobs every command needs."""
    from cli.config import get_migration_paths, get_paths, load_config_model

    try:
        config_model = load_config_model()
    except ValueError as e:
        console.print(f"[red]Config error:[/] {escape(str(e))}")
        sys.exit(1)

    paths = get_paths(config_model)
    return {
        "config_model": config_model,
        "paths": paths,
        "brain_path": paths["brain_path"],
        "migration_paths": get_migration_paths(config_model),
        "timeout": config_model.lock.timeout,
    }


def run_action(action: str, params: dict | None = None, *, with_migration: bool = False):
    """Dispatch one brain action; print a red error and exit 1 on failure."""
    from brain.actions import handle_action

    c = get_components()
    result = handle_action(
        c["brain_path"],
        action,
        params,
        timeout=c["timeout"],
        migration_paths=c["migration_paths"] if with_migration else None,
    )
    if not result.ok:
        console.print(f"[red]{escape(result.message)}[/]")
        sys.exit(1)
    return result


def parse_fields(pairs: tuple[str, ...]) -> dict:
    """Turn ("k=v", ...) into a dict. Raises click.BadParameter on bad pairs."""
    fields = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got '{pair}'", param_hint="--field")
        fields[key.strip()] = value
    return fields
