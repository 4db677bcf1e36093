"""Task queue view over the Task entries of a MaterializedBrain."""

import re
from datetime import date
from typing import Iterable, Optional

from .errors import ValidationError
from .models import TaskEntry, TaskPriority, TaskStatus

PRIORITY_ORDER = {
    TaskPriority.URGENT: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.NORMAL: 2,
    TaskPriority.LOW: 3,
}

_DUE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def sort_tasks(tasks: Iterable[TaskEntry]) -> list[TaskEntry]:
    """Priority order (urgent first), newest first within a priority."""
    newest_first = sorted(tasks, key=lambda t: t.created, reverse=True)
    return sorted(newest_first, key=lambda t: PRIORITY_ORDER.get(t.priority, 2))


def filter_tasks(tasks: Iterable[TaskEntry], filter: Optional[str] = None) -> list[TaskEntry]:
    """``pending`` (default), ``all``, ``done``, or a tag among pending tasks."""
    tasks = list(tasks)
    if not filter or filter == "pending":
        return [t for t in tasks if t.status == TaskStatus.PENDING]
    if filter == "all":
        return tasks
    if filter == "done":
        return [t for t in tasks if t.status == TaskStatus.DONE]
    tag = filter.lower()
    return [t for t in tasks if t.status == TaskStatus.PENDING and tag in t.tags]


def find_task(tasks: Iterable[TaskEntry], id_prefix: str) -> Optional[TaskEntry]:
    """Exact id, else a unique prefix of at least 4 characters."""
    prefix = id_prefix.strip().lower()
    tasks = list(tasks)
    for t in tasks:
        if t.id == prefix:
            return t
    if len(prefix) < 4:
        return None
    matches = [t for t in tasks if t.id.startswith(prefix)]
    return matches[0] if len(matches) == 1 else None


def parse_tags(tags: str | list[str] | None) -> list[str]:
    if not tags:
        return []
    items = tags.split(",") if isinstance(tags, str) else tags
    return [t.strip().lower() for t in items if t and t.strip()]


def validate_due(due: Optional[str]) -> Optional[str]:
    due = (due or "").strip() or None
    if due and not _DUE_RE.match(due):
        raise ValidationError(f"invalid due date '{due}'. Use YYYY-MM-DD format.", field="due")
    return due


def format_task(task: TaskEntry) -> str:
    status = "[x]" if task.status == TaskStatus.DONE else "[ ]"
    line = f"{status} [{task.id}] {task.description}"
    if task.priority != TaskPriority.NORMAL:
        line += f" ({task.priority})"
    if task.due:
        line += f" due:{task.due}"
    if task.tags:
        line += " #" + " #".join(task.tags)
    if task.completed_at:
        line += f" done:{task.completed_at[:10]}"
    return line


def heartbeat_section(tasks: Iterable[TaskEntry], today: Optional[date] = None) -> Optional[str]:
    """Pending-task summary for a periodic check-in prompt, or None."""
    pending = sorted(
        (t for t in tasks if t.status == TaskStatus.PENDING),
        key=lambda t: PRIORITY_ORDER.get(t.priority, 2),
    )
    if not pending:
        return None

    now = (today or date.today()).isoformat()
    lines = []
    for t in pending:
        line = f"- [{t.id}] {t.description}"
        if t.priority != TaskPriority.NORMAL:
            line += f" ({t.priority})"
        if t.due:
            line += f" **OVERDUE** (due {t.due})" if t.due < now else f" (due {t.due})"
        if t.tags:
            line += f" [{', '.join(t.tags)}]"
        lines.append(line)
    return f"Pending tasks ({len(pending)}):\n" + "\n".join(lines)
