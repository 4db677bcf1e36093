"""Task queue CLI commands."""

import click
from rich.console import Console
from rich.markup import escape

from cli.utils import run_action

console = Console()


@click.group()
def task():
    """Lightweight task queue stored in the brain."""
    pass


@task.command("add")
@click.argument("description")
@click.option(
    "--priority",
    "-p",
    type=click.Choice(["urgent", "high", "normal", "low"]),
    default="normal",
    help="Task priority",
)
@click.option("--tags", "-t", default=None, help="Comma-separated tags")
@click.option("--due", default=None, help="Due date (YYYY-MM-DD)")
def task_add(description: str, priority: str, tags: str | None, due: str | None):
    """Add a pending task."""
    params = {"type": "task", "description": description, "priority": priority}
    if tags:
        params["tags"] = tags
    if due:
        params["due"] = due
    result = run_action("add", params)
    console.print(f"[green]{escape(result.message)}[/]")


@task.command("list")
@click.option("--filter", "-f", "flt", default="pending", help="pending, all, done, or a tag")
def task_list(flt: str):
    """List tasks, highest priority first."""
    result = run_action("list", {"type": "task", "filter": flt})
    console.print(escape(result.message), highlight=False)


@task.command("done")
@click.argument("task_id")
def task_done(task_id: str):
    """Mark a task done (id or unique prefix of 4+ chars)."""
    result = run_action("task_done", {"id": task_id})
    console.print(f"[green]{escape(result.message)}[/]")


@task.command("remove")
@click.argument("task_id")
def task_remove(task_id: str):
    """Remove a task."""
    result = run_action("remove", {"id": task_id, "reason": "task_remove"})
    console.print(escape(result.message))


@task.command("clear")
def task_clear():
    """Remove every completed task."""
    result = run_action("task_clear")
    console.print(escape(result.message))
