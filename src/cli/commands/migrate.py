"""Legacy data migration command."""

import sys

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from brain.errors import LockTimeout
from brain.migration import detect_migration, run_migration, skip_migration
from cli.utils import get_components

console = Console()

_CATEGORIES = ("behaviors", "identity", "user", "learnings", "preferences", "contexts", "tasks")


@click.command("migrate")
@click.option("--force", is_flag=True, help="Re-scan legacy files even if already migrated")
@click.option("--skip", "skip", is_flag=True, help="Never import legacy data")
@click.option("--dry-run", is_flag=True, help="Count what would be imported without writing")
def migrate(force: bool, skip: bool, dry_run: bool):
    """Import legacy core/memory/context/task logs into the brain."""
    c = get_components()
    paths = c["migration_paths"]

    if skip:
        skip_migration(paths)
        console.print("[yellow]Migration skipped.[/] Legacy files left untouched.")
        return

    status = detect_migration(paths)
    if not status.has_legacy:
        console.print("No legacy data found.")
        return

    try:
        stats = run_migration(
            paths,
            force=force,
            dry_run=dry_run,
            timeout=c["config_model"].lock.migration_timeout,
        )
    except LockTimeout as e:
        console.print(f"[red]Error:[/] {escape(str(e))}")
        sys.exit(1)

    if stats.already_migrated:
        console.print("Already migrated. Use --force to re-scan.")
        return

    table = Table(title="Migration (dry run)" if dry_run else "Migration")
    table.add_column("Category")
    table.add_column("Imported", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="dim")
    for name in _CATEGORIES:
        table.add_row(name, str(getattr(stats, name)), str(stats.skipped_by.get(name, 0)))
    console.print(table)
    console.print(f"Imported {stats.imported}, skipped {stats.skipped}, parse errors {stats.parse_errors}")
