"""Verb + params dispatcher over the brain store.

Used by the CLI and the MCP tool server. Every handler validates its params,
folds and/or appends, and returns an ActionResult. Store errors that callers
are expected to handle (validation, not found, busy) become ``ok=False``
results; anything else propagates.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import structlog

from .errors import LockTimeout, NotFound, ValidationError
from .lock import DEFAULT_TIMEOUT
from .migration import MigrationPaths, detect_migration
from .models import (
    ENTRY_MODELS,
    BrainEntry,
    EntryType,
    MaterializedBrain,
    TaskStatus,
    normalize_text,
)
from .fold import fold_brain
from .schema import now_iso
from .store import (
    DETERMINISTIC_TYPES,
    append_entry,
    append_with_dedup,
    natural_key,
    read_brain,
    with_deterministic_id,
)
from .tasks import filter_tasks, find_task, format_task, parse_tags, sort_tasks, validate_due

logger = structlog.get_logger()

_PROTECTED = ("id", "type", "created")

# Plural container names accepted by ``list``
_LIST_TYPES = {
    "behavior": "behaviors",
    "identity": "identity",
    "user": "user",
    "learning": "learnings",
    "preference": "preferences",
    "context": "contexts",
    "task": "tasks",
    "reminder": "reminders",
    "meta": "meta",
}


@dataclass
class ActionResult:
    ok: bool
    message: str
    data: dict = field(default_factory=dict)
    error: Optional[str] = None

    def to_dict(self) -> dict:
        out = {"ok": self.ok, "message": self.message, **self.data}
        if self.error:
            out["error"] = self.error
        return out


@dataclass
class ActionContext:
    path: Path
    timeout: float = DEFAULT_TIMEOUT
    migration_paths: Optional[MigrationPaths] = None

    def brain(self) -> MaterializedBrain:
        return fold_brain(read_brain(self.path).entries)


def _require(params: dict, name: str) -> str:
    value = params.get(name)
    if isinstance(value, str):
        value = value.strip()
    if not value:
        raise ValidationError(f"{name} is required", field=name)
    return value


def _resolve(brain: MaterializedBrain, ref: str) -> BrainEntry:
    entry = brain.find(ref)
    if entry is None:
        entry = find_task(brain.tasks.values(), ref)
    if entry is None:
        raise NotFound(ref)
    return entry


def _fields(params: dict) -> dict:
    return {k: v for k, v in params.items() if k not in ("action", *_PROTECTED)}


def _summary(entry: BrainEntry) -> str:
    for attr in ("text", "description", "content"):
        value = getattr(entry, attr, None)
        if value:
            return value if len(value) <= 80 else value[:77] + "..."
    key = getattr(entry, "key", None)
    return f"{key} = {getattr(entry, 'value', '')}" if key else entry.id


# === add ===


def _prepare_task(fields: dict) -> dict:
    fields["description"] = _require(fields, "description")
    fields["tags"] = parse_tags(fields.get("tags"))
    fields["due"] = validate_due(fields.get("due"))
    fields["status"] = TaskStatus.PENDING.value
    fields.pop("completedAt", None)
    fields.pop("completed_at", None)
    return fields


def _add(ctx: ActionContext, params: dict) -> ActionResult:
    entry_type = _require(params, "type")
    if entry_type not in ENTRY_MODELS or entry_type == EntryType.TOMBSTONE:
        raise ValidationError(f'cannot add entries of type "{entry_type}"', field="type")

    fields = {"type": entry_type, **_fields(params)}
    if entry_type == EntryType.TASK:
        fields = _prepare_task(fields)
    elif entry_type == EntryType.LEARNING:
        fields.setdefault("source", "manual")
    elif entry_type == EntryType.PREFERENCE:
        fields["category"] = (fields.get("category") or "General").strip() or "General"

    if entry_type in (EntryType.BEHAVIOR, EntryType.LEARNING, EntryType.PREFERENCE):
        stored, created = append_with_dedup(ctx.path, fields, timeout=ctx.timeout)
        if not created:
            return ActionResult(True, "Already stored", {"id": stored.id, "duplicate": True})
    elif entry_type in (EntryType.IDENTITY, EntryType.USER, EntryType.META):
        # Upsert: stable id per key, rewrite only when the value changes
        stored, created = append_with_dedup(ctx.path, fields, timeout=ctx.timeout)
        if not created and stored.value == fields.get("value"):
            return ActionResult(True, "Already stored", {"id": stored.id, "duplicate": True})
        if not created:
            stored = append_entry(ctx.path, with_deterministic_id(fields), timeout=ctx.timeout)
    else:
        stored = append_entry(ctx.path, fields, timeout=ctx.timeout)

    logger.info("brain_action_add", type=entry_type, id=stored.id)
    data = {"id": stored.id, "entry": stored.to_record()}
    if entry_type == EntryType.TASK:
        return ActionResult(True, f"Task added: [{stored.id}] {stored.description}", data)
    return ActionResult(True, f"Stored {entry_type}: [{stored.id}] {_summary(stored)}", data)


# === read / update / remove ===


def _read(ctx: ActionContext, params: dict) -> ActionResult:
    entry = _resolve(ctx.brain(), _require(params, "id"))
    return ActionResult(True, f"[{entry.id}] {entry.type}: {_summary(entry)}", {"entry": entry.to_record()})


def _update(ctx: ActionContext, params: dict) -> ActionResult:
    existing = _resolve(ctx.brain(), _require(params, "id"))
    changes = _fields(params)
    if not changes:
        raise ValidationError("no fields to update", field="fields")

    record = existing.to_record()
    record.update(changes)
    if existing.type == EntryType.TASK:
        if "tags" in changes:
            record["tags"] = parse_tags(changes["tags"])
        if "due" in changes:
            record["due"] = validate_due(changes["due"])
        if record.get("status") == TaskStatus.DONE and not record.get("completedAt"):
            record["completedAt"] = now_iso()
        elif record.get("status") == TaskStatus.PENDING:
            record.pop("completedAt", None)

    rekeyed = existing.type in DETERMINISTIC_TYPES and natural_key(record) != natural_key(existing)
    if rekeyed:
        # The old id belongs to the old content; move the fact to its new id
        record = with_deterministic_id(record)
    stored = append_entry(ctx.path, record, timeout=ctx.timeout)
    if rekeyed:
        _tombstone(ctx, existing, "rekeyed")
    logger.info("brain_action_update", type=stored.type, id=stored.id, fields=sorted(changes))
    data = {"id": stored.id, "entry": stored.to_record()}
    if rekeyed:
        data["previous_id"] = existing.id
    return ActionResult(True, f"Updated [{stored.id}] {_summary(stored)}", data)


def _tombstone(ctx: ActionContext, entry: BrainEntry, reason: str) -> None:
    append_entry(
        ctx.path,
        {"type": "tombstone", "target_id": entry.id, "target_type": entry.type, "reason": reason},
        timeout=ctx.timeout,
    )


def _remove(ctx: ActionContext, params: dict) -> ActionResult:
    entry = _resolve(ctx.brain(), _require(params, "id"))
    _tombstone(ctx, entry, params.get("reason") or "manual")
    logger.info("brain_action_remove", type=entry.type, id=entry.id)
    return ActionResult(True, f"Removed: [{entry.id}] {_summary(entry)}", {"id": entry.id, "type": entry.type})


# === list / search / status ===


def _limit(params: dict) -> int:
    raw = params.get("limit")
    if raw in (None, ""):
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"limit must be an integer, got {raw!r}", field="limit") from None


def _list(ctx: ActionContext, params: dict) -> ActionResult:
    brain = ctx.brain()
    entry_type = (params.get("type") or "").strip()
    limit = _limit(params)

    if entry_type == EntryType.TASK:
        flt = params.get("filter") or "pending"
        tasks = sort_tasks(filter_tasks(brain.tasks.values(), flt))
        label = {"all": "task(s)", "done": "completed task(s)"}.get(flt, "pending task(s)")
        if not tasks:
            empty = {"all": "tasks", "done": "completed tasks"}.get(flt, "pending tasks")
            return ActionResult(True, f"No {empty}.", {"entries": [], "count": 0})
        shown = tasks[:limit] if limit > 0 else tasks
        lines = "\n".join(format_task(t) for t in shown)
        return ActionResult(
            True,
            f"{len(tasks)} {label}:\n{lines}",
            {"entries": [t.to_record() for t in shown], "count": len(tasks)},
        )

    if entry_type:
        if entry_type not in _LIST_TYPES:
            raise ValidationError(f'unknown type "{entry_type}"', field="type")
        container = getattr(brain, _LIST_TYPES[entry_type])
        entries = list(container.values()) if isinstance(container, dict) else list(container)
    else:
        entries = brain.all_entries()

    shown = entries[:limit] if limit > 0 else entries
    lines = "\n".join(f"[{e.id}] {e.type}: {_summary(e)}" for e in shown) or "(none)"
    return ActionResult(
        True,
        f"{len(entries)} entr{'y' if len(entries) == 1 else 'ies'}:\n{lines}",
        {"entries": [e.to_record() for e in shown], "count": len(entries)},
    )


def _search(ctx: ActionContext, params: dict) -> ActionResult:
    query = normalize_text(_require(params, "query"))
    brain = ctx.brain()
    pool = [*brain.learnings, *brain.preferences, *brain.behaviors]
    matches = [e for e in pool if query in e.text.lower()]
    message = "\n".join(f"[{m.id}] {m.text}" for m in matches) if matches else "No matches"
    return ActionResult(True, message, {"entries": [m.to_record() for m in matches], "count": len(matches)})


def _status(ctx: ActionContext, params: dict) -> ActionResult:
    result = read_brain(ctx.path)
    brain = fold_brain(result.entries)
    counts = brain.counts()
    pending = sum(1 for t in brain.tasks.values() if t.status == TaskStatus.PENDING)
    data = {
        "counts": counts,
        "pending_tasks": pending,
        "tombstoned": len(brain.tombstoned),
        "log": {
            "entries": result.stats.total,
            "bad_lines": result.stats.bad_lines,
            "invalid_lines": result.stats.invalid_lines,
            "truncated_tail": result.stats.truncated_tail,
        },
    }
    if ctx.migration_paths:
        status = detect_migration(ctx.migration_paths)
        data["migration"] = {
            "has_legacy": status.has_legacy,
            "already_migrated": status.already_migrated,
            "legacy_files": status.legacy_files,
        }
    message = (
        f"{counts['learnings']}L {counts['preferences']}P | "
        f"core: {counts['identity']}id {counts['behaviors']}beh | "
        f"tasks: {pending} pending"
    )
    if result.stats.skipped:
        message += f" | {result.stats.skipped} unreadable line(s)"
    return ActionResult(True, message, data)


# === task shorthands ===


def _task_done(ctx: ActionContext, params: dict) -> ActionResult:
    ref = _require(params, "id")
    task = find_task(ctx.brain().tasks.values(), ref)
    if task is None:
        raise NotFound(ref, kind="task")
    if task.status == TaskStatus.DONE:
        return ActionResult(True, f"Task [{task.id}] is already done.", {"id": task.id, "entry": task.to_record()})
    record = {**task.to_record(), "status": TaskStatus.DONE.value, "completedAt": now_iso()}
    stored = append_entry(ctx.path, record, timeout=ctx.timeout)
    logger.info("brain_task_done", id=stored.id)
    return ActionResult(True, f"Done: [{stored.id}] {stored.description}", {"id": stored.id, "entry": stored.to_record()})


def _task_clear(ctx: ActionContext, params: dict) -> ActionResult:
    done = [t for t in ctx.brain().tasks.values() if t.status == TaskStatus.DONE]
    if not done:
        return ActionResult(True, "No completed tasks to clear.", {"count": 0})
    for task in done:
        _tombstone(ctx, task, "clear_done")
    return ActionResult(True, f"Cleared {len(done)} completed task(s).", {"count": len(done)})


ACTIONS: dict[str, Callable[[ActionContext, dict], ActionResult]] = {
    "add": _add,
    "read": _read,
    "update": _update,
    "remove": _remove,
    "list": _list,
    "search": _search,
    "status": _status,
    "task_done": _task_done,
    "task_clear": _task_clear,
}


def handle_action(
    path: str | Path,
    action: str,
    params: Optional[dict] = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    migration_paths: Optional[MigrationPaths] = None,
) -> ActionResult:
    ctx = ActionContext(Path(path).expanduser(), timeout, migration_paths)
    params = dict(params or {})
    handler = ACTIONS.get(action)
    if handler is None:
        return ActionResult(
            False,
            f"Error: unknown action '{action}'. Valid: {', '.join(ACTIONS)}",
            error="ValidationError",
        )
    try:
        return handler(ctx, params)
    except (ValidationError, NotFound, LockTimeout) as e:
        logger.info("brain_action_failed", action=action, error=type(e).__name__, detail=str(e))
        data = {"field": e.field} if isinstance(e, ValidationError) and e.field else {}
        return ActionResult(False, f"Error: {e}", data, error=type(e).__name__)
