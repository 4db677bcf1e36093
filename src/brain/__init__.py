"""Brain: append-only JSONL memory store for a long-running agent."""

from .actions import ActionResult, handle_action
from .errors import BrainError, LockTimeout, NotFound, ParseError, ValidationError
from .fold import fold_brain
from .migration import MigrationPaths, MigrationStats, detect_migration, run_migration
from .models import EntryType, MaterializedBrain, SCHEMA_REGISTRY
from .prompt import build_prompt
from .schema import validate_entry
from .store import append_entry, append_with_dedup, deterministic_id, load_brain, read_brain

__all__ = [
    "ActionResult",
    "handle_action",
    "BrainError",
    "LockTimeout",
    "NotFound",
    "ParseError",
    "ValidationError",
    "fold_brain",
    "MigrationPaths",
    "MigrationStats",
    "detect_migration",
    "run_migration",
    "EntryType",
    "MaterializedBrain",
    "SCHEMA_REGISTRY",
    "build_prompt",
    "validate_entry",
    "append_entry",
    "append_with_dedup",
    "deterministic_id",
    "load_brain",
    "read_brain",
]
