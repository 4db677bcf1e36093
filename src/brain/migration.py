"""One-time migration of the legacy per-concern logs into brain.jsonl.

Legacy inputs (never written, truncated, or deleted):

- ``core.jsonl``     behaviors, identity, user
- ``memory.jsonl``   learnings, preferences (``used``/``last_used`` dropped)
- ``context.jsonl``  project contexts
- ``tasks.jsonl``    tasks, often without a ``type`` discriminant

Completion is recorded as a Meta ``migration.v2`` entry; that entry is the
only persisted migration state.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .lock import file_lock
from .models import MaterializedBrain, normalize_text
from .schema import validate_entry
from .store import append_entry, append_with_dedup, load_brain, set_meta, with_deterministic_id

logger = structlog.get_logger()

MIGRATION_KEY = "migration.v2"
MIGRATION_DONE = "done"
MIGRATION_SKIP = "skip"
MIGRATION_LOCK_TIMEOUT = 30.0


@dataclass
class MigrationPaths:
    brain_path: Path
    legacy_core: Path
    legacy_memory: Path
    legacy_context: Path
    legacy_tasks: Path

    @classmethod
    def from_dirs(cls, brain_path: str | Path, brain_dir: str | Path, rho_dir: str | Path) -> "MigrationPaths":
        brain_dir = Path(brain_dir).expanduser()
        return cls(
            brain_path=Path(brain_path).expanduser(),
            legacy_core=brain_dir / "core.jsonl",
            legacy_memory=brain_dir / "memory.jsonl",
            legacy_context=brain_dir / "context.jsonl",
            legacy_tasks=Path(rho_dir).expanduser() / "tasks.jsonl",
        )

    def legacy_files(self) -> list[Path]:
        return [self.legacy_core, self.legacy_memory, self.legacy_context, self.legacy_tasks]


@dataclass
class MigrationStatus:
    has_legacy: bool
    already_migrated: bool
    legacy_files: list[str] = field(default_factory=list)


@dataclass
class MigrationStats:
    behaviors: int = 0
    identity: int = 0
    user: int = 0
    learnings: int = 0
    preferences: int = 0
    contexts: int = 0
    tasks: int = 0
    skipped: int = 0
    skipped_by: dict[str, int] = field(default_factory=dict)
    parse_errors: int = 0
    already_migrated: bool = False
    dry_run: bool = False

    @property
    def imported(self) -> int:
        return (
            self.behaviors
            + self.identity
            + self.user
            + self.learnings
            + self.preferences
            + self.contexts
            + self.tasks
        )

    def skip(self, category: str) -> None:
        self.skipped += 1
        self.skipped_by[category] = self.skipped_by.get(category, 0) + 1

    def to_dict(self) -> dict:
        return {**asdict(self), "imported": self.imported}


# === Legacy shapes ===


class _LegacyRecord(BaseModel):
    """Permissive legacy line: every field optional, unknown fields dropped."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    type: Optional[str] = None
    created: Optional[str] = None


class LegacyCoreRecord(_LegacyRecord):
    category: Optional[str] = None
    text: Optional[str] = None
    key: Optional[str] = None
    value: Optional[str] = None


class LegacyMemoryRecord(_LegacyRecord):
    text: Optional[str] = None
    category: Optional[str] = None
    source: Optional[str] = None


class LegacyContextRecord(_LegacyRecord):
    project: Optional[str] = None
    path: Optional[str] = None
    content: Optional[str] = None


class LegacyTaskRecord(_LegacyRecord):
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    tags: Optional[list[str]] = None
    due: Optional[str] = None
    completedAt: Optional[str] = None


# === Translation: legacy record -> (category, dedup key, canonical dict) ===


Translated = Optional[tuple[str, Any, dict]]


def translate_core(rec: LegacyCoreRecord, now: str) -> Translated:
    created = rec.created or now
    if rec.type == "behavior" and rec.text and rec.category:
        entry = {"type": "behavior", "category": rec.category, "text": rec.text, "created": created}
        return "behaviors", (rec.category, rec.text), with_deterministic_id(entry)
    if rec.type in ("identity", "user") and rec.key and rec.value is not None:
        entry = {"type": rec.type, "key": rec.key, "value": rec.value, "created": created}
        return rec.type, rec.key, with_deterministic_id(entry)
    return None


def translate_memory(rec: LegacyMemoryRecord, now: str) -> Translated:
    text = (rec.text or "").strip()
    if not text:
        return None
    created = rec.created or now
    if rec.type == "learning":
        entry = {"type": "learning", "text": text, "source": "migration", "created": created}
        return "learnings", normalize_text(text), entry
    if rec.type == "preference":
        entry = {
            "type": "preference",
            "text": text,
            "category": rec.category or "General",
            "created": created,
        }
        return "preferences", normalize_text(text), entry
    return None


def translate_context(rec: LegacyContextRecord, now: str) -> Translated:
    if rec.type not in (None, "context") or not rec.path or not rec.content:
        return None
    entry = {
        "type": "context",
        "project": rec.project or Path(rec.path).name,
        "path": rec.path,
        "content": rec.content,
        "created": rec.created or now,
    }
    return "contexts", rec.path, entry


def translate_task(rec: LegacyTaskRecord, now: str) -> Translated:
    # Records from before the unified log carry no type discriminant
    if rec.type not in (None, "task") or not rec.description:
        return None
    entry = {
        "id": rec.id,
        "type": "task",
        "description": rec.description,
        "status": rec.status or "pending",
        "priority": rec.priority or "normal",
        "tags": rec.tags or [],
        "due": rec.due,
        "completedAt": rec.completedAt,
        "created": rec.created or now,
    }
    return "tasks", rec.description, entry


_SOURCES: list[tuple[str, str, type[_LegacyRecord], Callable[[Any, str], Translated]]] = [
    ("legacy_core", "core", LegacyCoreRecord, translate_core),
    ("legacy_memory", "memory", LegacyMemoryRecord, translate_memory),
    ("legacy_context", "contexts", LegacyContextRecord, translate_context),
    ("legacy_tasks", "tasks", LegacyTaskRecord, translate_task),
]


# === Helpers ===


def _has_content(path: Path) -> bool:
    try:
        return bool(path.read_bytes().strip())
    except OSError:
        return False


def _read_legacy(path: Path) -> Iterator[tuple[int, Optional[dict]]]:
    """Yield (line_no, record) per non-blank line; record is None if unparseable."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return
    for line_no, line in enumerate(raw.split(b"\n"), start=1):
        if not line.strip():
            continue
        try:
            data = json.loads(line.decode("utf-8"))
        except ValueError:
            yield line_no, None
            continue
        yield line_no, data if isinstance(data, dict) else None


def _dedup_sets(brain: MaterializedBrain) -> dict[str, set]:
    # Learnings and preferences share one text set: a fact is stored once
    texts = {normalize_text(l.text) for l in brain.learnings}
    texts.update(normalize_text(p.text) for p in brain.preferences)
    return {
        "behaviors": {(b.category.value, b.text) for b in brain.behaviors},
        "identity": set(brain.identity),
        "user": set(brain.user),
        "learnings": texts,
        "preferences": texts,
        "contexts": {c.path for c in brain.contexts},
        "tasks": {t.description for t in brain.tasks.values()},
    }


def _marker(brain: MaterializedBrain) -> Optional[str]:
    entry = brain.meta.get(MIGRATION_KEY)
    return entry.value if entry else None


# === Public API ===


def detect_migration(paths: MigrationPaths) -> MigrationStatus:
    legacy = [str(p) for p in paths.legacy_files() if _has_content(p)]
    marker = _marker(load_brain(paths.brain_path))
    return MigrationStatus(
        has_legacy=bool(legacy),
        already_migrated=marker in (MIGRATION_DONE, MIGRATION_SKIP),
        legacy_files=legacy,
    )


def _migrate(paths: MigrationPaths, dry_run: bool) -> MigrationStats:
    stats = MigrationStats(dry_run=dry_run)
    now = datetime.now(timezone.utc).isoformat()
    seen = _dedup_sets(load_brain(paths.brain_path))

    for attr, label, shape, translate in _SOURCES:
        path = getattr(paths, attr)
        for line_no, data in _read_legacy(path):
            if data is None:
                stats.parse_errors += 1
                stats.skip(label)
                logger.debug("migration_unparseable_line", file=str(path), line=line_no)
                continue
            try:
                translated = translate(shape.model_validate(data), now)
            except PydanticValidationError:
                translated = None
            if translated is None:
                stats.skip(label)
                continue

            category, key, entry = translated
            if key in seen[category]:
                stats.skip(category)
                continue
            try:
                validated = validate_entry(entry)
            except ValidationError as e:
                logger.warning("migration_invalid_record", file=str(path), line=line_no, error=str(e))
                stats.skip(category)
                continue
            if not dry_run:
                append_entry(paths.brain_path, validated)
            seen[category].add(key)
            setattr(stats, category, getattr(stats, category) + 1)

    return stats


def run_migration(
    paths: MigrationPaths,
    *,
    force: bool = False,
    dry_run: bool = False,
    timeout: float = MIGRATION_LOCK_TIMEOUT,
) -> MigrationStats:
    """Absorb legacy logs into the unified log, at most once.

    Detection and import run inside one ``.migrate.lock`` critical section, so
    two processes starting together cannot both import. ``force`` re-scans
    even when the marker is present (the dedup sets then skip everything).
    """
    with file_lock(paths.brain_path, timeout, purpose="migration", suffix=".migrate.lock"):
        status = detect_migration(paths)
        if status.already_migrated and not force:
            logger.info("migration_already_done", brain=str(paths.brain_path))
            return MigrationStats(already_migrated=True, dry_run=dry_run)

        stats = _migrate(paths, dry_run)
        if not dry_run:
            marker, created = append_with_dedup(
                paths.brain_path, {"type": "meta", "key": MIGRATION_KEY, "value": MIGRATION_DONE}
            )
            if not created and marker.value != MIGRATION_DONE:
                set_meta(paths.brain_path, MIGRATION_KEY, MIGRATION_DONE)

    logger.info("migration_complete", **{k: v for k, v in stats.to_dict().items() if k != "skipped_by"})
    return stats


def skip_migration(paths: MigrationPaths) -> None:
    """Record that legacy data should never be imported."""
    set_meta(paths.brain_path, MIGRATION_KEY, MIGRATION_SKIP)
    logger.info("migration_skipped", brain=str(paths.brain_path))
