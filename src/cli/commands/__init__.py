"""CLI command modules."""

from .memory import add, learn, list_entries, prefer, prompt, remove, search, show, status
from .migrate import migrate
from .tasks import task

__all__ = [
    "status",
    "list_entries",
    "show",
    "add",
    "learn",
    "prefer",
    "remove",
    "search",
    "prompt",
    "migrate",
    "task",
]
