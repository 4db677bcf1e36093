"""Append-only JSONL persistence for brain entries.

Every function takes the log path explicitly. Writers serialize through the
file lock; readers never lock and tolerate corrupted lines.
"""

import hashlib
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import structlog

from .errors import ParseError, ValidationError
from .fold import fold_brain
from .lock import DEFAULT_TIMEOUT, file_lock
from .models import (
    BehaviorEntry,
    BrainEntry,
    IdentityEntry,
    MaterializedBrain,
    MetaEntry,
    UserEntry,
)
from .schema import validate_entry

logger = structlog.get_logger()


@dataclass
class ReadStats:
    total: int = 0
    bad_lines: int = 0
    invalid_lines: int = 0
    truncated_tail: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return self.bad_lines + self.invalid_lines + int(self.truncated_tail)


@dataclass
class ReadResult:
    entries: list[BrainEntry]
    stats: ReadStats


def _parse_line(line: bytes, line_no: int) -> Any:
    try:
        return json.loads(line.decode("utf-8"))
    except ValueError as e:
        # UnicodeDecodeError is a ValueError too
        raise ParseError(line_no, str(e)) from e


def read_brain(path: str | Path) -> ReadResult:
    """Read every entry in log order.

    Unparseable lines are skipped and counted in the returned stats rather than
    raised, so one bad line never makes the whole memory unreadable. Lines are
    decoded one at a time, so a stray invalid byte only costs its own line.
    """
    path = Path(path).expanduser()
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return ReadResult([], ReadStats())

    stats = ReadStats()
    entries: list[BrainEntry] = []
    if not raw.strip():
        return ReadResult(entries, stats)

    ends_with_newline = raw.endswith(b"\n")
    lines = [(i, ln) for i, ln in enumerate(raw.split(b"\n"), start=1) if ln.strip()]

    for pos, (line_no, line) in enumerate(lines):
        try:
            data = _parse_line(line, line_no)
        except ParseError as e:
            if pos == len(lines) - 1 and not ends_with_newline:
                stats.truncated_tail = True
            else:
                stats.bad_lines += 1
            stats.errors.append(str(e))
            continue
        try:
            entries.append(validate_entry(data, fill_defaults=False))
        except ValidationError as e:
            stats.invalid_lines += 1
            stats.errors.append(f"Line {line_no}: {e}")

    stats.total = len(entries)
    if stats.skipped:
        logger.warning(
            "brain_read_skipped_lines",
            path=str(path),
            bad_lines=stats.bad_lines,
            invalid_lines=stats.invalid_lines,
            truncated_tail=stats.truncated_tail,
        )
    return ReadResult(entries, stats)


def load_brain(path: str | Path) -> MaterializedBrain:
    """Read and fold in one call."""
    return fold_brain(read_brain(path).entries)


def _write_line(path: Path, entry: BrainEntry) -> None:
    # One write() on an O_APPEND descriptor so readers never see a torn line
    data = (json.dumps(entry.to_record(), ensure_ascii=False) + "\n").encode("utf-8")
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(str(path), os.O_APPEND | os.O_CREAT | os.O_WRONLY, 0o644)
    try:
        written = os.write(fd, data)
    finally:
        os.close(fd)
    if written != len(data):
        raise OSError(f"Short write to {path}: {written}/{len(data)} bytes")


def append_entry(
    path: str | Path,
    entry: BrainEntry | dict,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> BrainEntry:
    """Validate, lock, append one line. Returns the stored entry."""
    stored = validate_entry(entry)
    path = Path(path).expanduser()
    with file_lock(path, timeout, purpose="append"):
        _write_line(path, stored)
    logger.debug("brain_append", path=str(path), type=stored.type, id=stored.id)
    return stored


def deterministic_id(entry_type: str, natural_key: str) -> str:
    """Stable 8-hex id for a fact; identical facts always collide."""
    return hashlib.sha256(f"{entry_type}:{natural_key}".encode("utf-8")).hexdigest()[:8]


_NATURAL_KEYS = {
    "behavior": lambda d: f"{d.get('category')}:{d.get('text')}",
    "identity": lambda d: d.get("key"),
    "user": lambda d: d.get("key"),
    "meta": lambda d: d.get("key"),
}

# Variants whose id is derived from content; the rest use random ids
DETERMINISTIC_TYPES = frozenset(_NATURAL_KEYS)


def natural_key(entry: BrainEntry | dict) -> Optional[str]:
    data = entry.to_record() if isinstance(entry, BrainEntry) else entry
    fn = _NATURAL_KEYS.get(data.get("type"))
    return fn(data) if fn else None


def with_deterministic_id(entry: BrainEntry | dict) -> dict:
    """Copy of ``entry`` with its id replaced by the content-derived id."""
    data = dict(entry.to_record() if isinstance(entry, BrainEntry) else entry)
    key = natural_key(data)
    if key is not None:
        data["id"] = deterministic_id(data["type"], key)
    return data


def _find_duplicate(brain: MaterializedBrain, candidate: BrainEntry) -> Optional[BrainEntry]:
    if candidate.type in DETERMINISTIC_TYPES:
        return brain.find(candidate.id)
    key = candidate.dedup_key()
    if key is None:
        return None
    pools = {
        "learning": brain.learnings,
        "preference": brain.preferences,
        "context": brain.contexts,
    }
    for existing in pools.get(candidate.type, []):
        if existing.dedup_key() == key:
            return existing
    return None


def append_with_dedup(
    path: str | Path,
    entry: BrainEntry | dict,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[BrainEntry, bool]:
    """Append only if the fact is not already in the materialized state.

    Returns ``(entry, created)``. When an equivalent entry exists the log is
    untouched and the existing entry comes back with ``created=False``. The
    read+fold happens inside the lock so check-then-append is atomic with
    respect to other writers.
    """
    candidate = validate_entry(with_deterministic_id(entry))
    path = Path(path).expanduser()
    with file_lock(path, timeout, purpose="dedup-append"):
        brain = load_brain(path)
        existing = _find_duplicate(brain, candidate)
        if existing is not None:
            logger.debug("brain_append_dedup_hit", path=str(path), type=candidate.type, id=existing.id)
            return existing, False
        _write_line(path, candidate)
    logger.debug("brain_append", path=str(path), type=candidate.type, id=candidate.id, dedup=True)
    return candidate, True


def set_identity(path: str | Path, key: str, value: str, **kw) -> IdentityEntry:
    """Last-write-wins upsert of an identity key under its stable id."""
    return append_entry(path, with_deterministic_id({"type": "identity", "key": key, "value": value}), **kw)


def set_user(path: str | Path, key: str, value: str, **kw) -> UserEntry:
    return append_entry(path, with_deterministic_id({"type": "user", "key": key, "value": value}), **kw)


def set_meta(path: str | Path, key: str, value: str, **kw) -> MetaEntry:
    return append_entry(path, with_deterministic_id({"type": "meta", "key": key, "value": value}), **kw)


def add_behavior(path: str | Path, category: str, text: str, **kw) -> tuple[BehaviorEntry, bool]:
    return append_with_dedup(path, {"type": "behavior", "category": category, "text": text}, **kw)
