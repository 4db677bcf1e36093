"""Memory CLI commands: status, list, show, add, learn, prefer, remove, search, prompt."""

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from cli.utils import get_components, parse_fields, run_action

console = Console()

_TYPES = ["behavior", "identity", "user", "learning", "preference", "context", "task", "reminder", "meta"]


def _summary(record: dict) -> str:
    for key in ("text", "description", "content"):
        if record.get(key):
            return record[key]
    if record.get("key"):
        return f"{record['key']} = {record.get('value', '')}"
    return ""


@click.command("status")
def status():
    """Show entry counts, log health and migration state."""
    result = run_action("status", with_migration=True)

    table = Table(title="Brain")
    table.add_column("Category")
    table.add_column("Entries", justify="right")
    for name, count in result.data["counts"].items():
        table.add_row(name, str(count))
    console.print(table)

    log = result.data["log"]
    console.print(f"Log lines read: {log['entries']}  pending tasks: {result.data['pending_tasks']}")
    if log["bad_lines"] or log["invalid_lines"] or log["truncated_tail"]:
        console.print(
            f"[yellow]Skipped lines:[/] {log['bad_lines']} unparseable, "
            f"{log['invalid_lines']} invalid, truncated tail: {log['truncated_tail']}"
        )
    migration = result.data.get("migration")
    if migration and migration["has_legacy"] and not migration["already_migrated"]:
        console.print("[yellow]Legacy data found.[/] Run [bold]brain migrate[/] to import it.")


@click.command("list")
@click.argument("entry_type", required=False, type=click.Choice(_TYPES))
@click.option("--limit", "-n", default=0, help="Max entries to show (0 = all)")
def list_entries(entry_type: str | None, limit: int):
    """List live entries, optionally of one TYPE."""
    params = {"type": entry_type or "", "limit": limit}
    if entry_type == "task":
        params["filter"] = "all"
    result = run_action("list", params)

    entries = result.data["entries"]
    if not entries:
        console.print("No entries stored.")
        return

    table = Table(title=f"Brain entries ({result.data['count']})")
    table.add_column("ID", style="dim", width=8)
    table.add_column("Type", width=10)
    table.add_column("Entry")
    table.add_column("Created", style="dim", width=10)
    for record in entries:
        table.add_row(record["id"], record["type"], escape(_summary(record)[:80]), record["created"][:10])
    console.print(table)


@click.command("show")
@click.argument("entry_id")
def show(entry_id: str):
    """Show every field of one entry (task ids may be prefixes)."""
    result = run_action("read", {"id": entry_id})
    for key, value in result.data["entry"].items():
        console.print(f"{key}: {escape(str(value))}")


@click.command("add")
@click.argument("entry_type", type=click.Choice(_TYPES))
@click.option("--field", "-f", "fields", multiple=True, help="key=value, repeatable")
def add(entry_type: str, fields: tuple[str, ...]):
    """Add an entry of TYPE built from --field key=value pairs."""
    params = {"type": entry_type, **parse_fields(fields)}
    result = run_action("add", params)
    console.print(f"[green]{escape(result.message)}[/]")


@click.command("learn")
@click.argument("text")
@click.option("--scope", type=click.Choice(["global", "project"]), default=None)
@click.option("--project-path", default=None, help="Project directory for project-scoped learnings")
def learn(text: str, scope: str | None, project_path: str | None):
    """Store a learning."""
    params = {"type": "learning", "text": text}
    if scope:
        params["scope"] = scope
    if project_path:
        params["projectPath"] = project_path
    result = run_action("add", params)
    console.print(f"[green]{escape(result.message)}[/]")


@click.command("prefer")
@click.argument("text")
@click.option("--category", "-c", default="General", help="Preference category")
def prefer(text: str, category: str):
    """Store a preference."""
    result = run_action("add", {"type": "preference", "text": text, "category": category})
    console.print(f"[green]{escape(result.message)}[/]")


@click.command("remove")
@click.argument("entry_id")
@click.option("--reason", default="manual_cli", help="Recorded on the tombstone")
@click.confirmation_option(prompt="Remove this entry?")
def remove(entry_id: str, reason: str):
    """Tombstone an entry."""
    result = run_action("remove", {"id": entry_id, "reason": reason})
    console.print(escape(result.message))


@click.command("search")
@click.argument("query")
def search(query: str):
    """Substring search over learnings, preferences and behaviors."""
    result = run_action("search", {"query": query})
    if not result.data["entries"]:
        console.print("No matching entries.")
        return
    for record in result.data["entries"]:
        label = escape(f"[{record['type']}] {record['text']}")
        console.print(f"[dim]{record['id']}[/] {label}")


@click.command("prompt")
@click.option("--cwd", default=None, help="Working directory used for context and scoring")
@click.option("--budget", type=int, default=None, help="Token budget (default from config)")
def prompt(cwd: str | None, budget: int | None):
    """Render the memory prompt an agent would receive."""
    import os

    from brain.prompt import build_prompt
    from brain.store import load_brain

    c = get_components()
    brain = load_brain(c["brain_path"])
    text = build_prompt(brain, cwd or os.getcwd(), budget or c["config_model"].prompt.budget)
    if not text:
        console.print("[yellow]Nothing to render: the brain is empty.[/]")
        return
    click.echo(text)
