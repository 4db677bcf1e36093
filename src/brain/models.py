"""Entry taxonomy for brain.jsonl and the materialized snapshot."""

import enum
import typing
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Annotated, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter


class EntryType(StrEnum):
    BEHAVIOR = "behavior"
    IDENTITY = "identity"
    USER = "user"
    LEARNING = "learning"
    PREFERENCE = "preference"
    CONTEXT = "context"
    TASK = "task"
    REMINDER = "reminder"
    TOMBSTONE = "tombstone"
    META = "meta"


class BehaviorCategory(StrEnum):
    DO = "do"
    DONT = "dont"
    VALUE = "value"


class TaskStatus(StrEnum):
    PENDING = "pending"
    DONE = "done"


class TaskPriority(StrEnum):
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class LearningScope(StrEnum):
    GLOBAL = "global"
    PROJECT = "project"


def normalize_text(text: str) -> str:
    return text.strip().lower()


class BrainEntry(BaseModel):
    """Fields shared by every log line. Entries are immutable once written."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(min_length=1)
    created: str = Field(min_length=1)

    def dedup_key(self) -> Optional[tuple]:
        """Content key under which list variants collapse duplicates."""
        return None

    def to_record(self) -> dict:
        """JSON-ready dict in on-disk key order: id, type, created, payload."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        head = {k: data.pop(k) for k in ("id", "type", "created")}
        return {**head, **data}


class BehaviorEntry(BrainEntry):
    type: Literal["behavior"] = "behavior"
    category: BehaviorCategory
    text: str = Field(min_length=1)

    def dedup_key(self):
        return (self.category.value, self.text)


class IdentityEntry(BrainEntry):
    type: Literal["identity"] = "identity"
    key: str = Field(min_length=1)
    value: str


class UserEntry(BrainEntry):
    type: Literal["user"] = "user"
    key: str = Field(min_length=1)
    value: str


class LearningEntry(BrainEntry):
    type: Literal["learning"] = "learning"
    text: str = Field(min_length=1)
    source: Optional[str] = None
    scope: Optional[LearningScope] = None
    project_path: Optional[str] = Field(default=None, alias="projectPath")

    def dedup_key(self):
        return (normalize_text(self.text),)


class PreferenceEntry(BrainEntry):
    type: Literal["preference"] = "preference"
    text: str = Field(min_length=1)
    category: str = Field(min_length=1)

    def dedup_key(self):
        return (normalize_text(self.text),)


class ContextEntry(BrainEntry):
    type: Literal["context"] = "context"
    project: str
    path: str = Field(min_length=1)
    content: str

    def dedup_key(self):
        return (self.path,)


class TaskEntry(BrainEntry):
    type: Literal["task"] = "task"
    description: str = Field(min_length=1)
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.NORMAL
    tags: list[str] = Field(default_factory=list)
    due: Optional[str] = None
    completed_at: Optional[str] = Field(default=None, alias="completedAt")


class ReminderEntry(BrainEntry):
    type: Literal["reminder"] = "reminder"
    description: str = Field(
        min_length=1, validation_alias=AliasChoices("description", "text")
    )
    fire_at: str = Field(alias="fireAt", validation_alias=AliasChoices("fireAt", "fire_at"))
    enabled: bool = True
    cadence: Optional[dict] = None  # {"kind": "interval", "every": "2h"} | {"kind": "daily", "at": "09:00"}
    priority: TaskPriority = TaskPriority.NORMAL
    tags: list[str] = Field(default_factory=list)
    last_run: Optional[str] = None
    next_due: Optional[str] = None
    last_result: Optional[Literal["ok", "error", "skipped"]] = None
    last_error: Optional[str] = None


class TombstoneEntry(BrainEntry):
    type: Literal["tombstone"] = "tombstone"
    target_id: str = Field(min_length=1, validation_alias=AliasChoices("target_id", "targetId"))
    target_type: Optional[str] = None
    reason: str = ""


class MetaEntry(BrainEntry):
    type: Literal["meta"] = "meta"
    key: str = Field(min_length=1)
    value: str


Entry = Annotated[
    Union[
        BehaviorEntry,
        IdentityEntry,
        UserEntry,
        LearningEntry,
        PreferenceEntry,
        ContextEntry,
        TaskEntry,
        ReminderEntry,
        TombstoneEntry,
        MetaEntry,
    ],
    Field(discriminator="type"),
]

ENTRY_ADAPTER: TypeAdapter = TypeAdapter(Entry)

ENTRY_MODELS: dict[str, type[BrainEntry]] = {
    EntryType.BEHAVIOR: BehaviorEntry,
    EntryType.IDENTITY: IdentityEntry,
    EntryType.USER: UserEntry,
    EntryType.LEARNING: LearningEntry,
    EntryType.PREFERENCE: PreferenceEntry,
    EntryType.CONTEXT: ContextEntry,
    EntryType.TASK: TaskEntry,
    EntryType.REMINDER: ReminderEntry,
    EntryType.TOMBSTONE: TombstoneEntry,
    EntryType.META: MetaEntry,
}


def _enum_in(annotation) -> Optional[type[enum.Enum]]:
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return annotation
    for arg in typing.get_args(annotation):
        found = _enum_in(arg)
        if found:
            return found
    return None


def _schema_for(model: type[BrainEntry]) -> dict:
    required: list[str] = []
    enums: dict[str, list[str]] = {}
    for name, info in model.model_fields.items():
        if name in ("id", "created", "type"):
            continue
        key = info.alias or name
        if info.is_required():
            required.append(key)
        enum_cls = _enum_in(info.annotation)
        if enum_cls:
            enums[key] = [m.value for m in enum_cls]
    return {"required": required, "enums": enums}


# Per-type required fields and closed enumerations, derived from the models
SCHEMA_REGISTRY: dict[str, dict] = {
    str(t): _schema_for(model) for t, model in ENTRY_MODELS.items()
}


@dataclass
class MaterializedBrain:
    """Current-state snapshot folded from the log. Never persisted."""

    behaviors: list[BehaviorEntry] = field(default_factory=list)
    identity: dict[str, IdentityEntry] = field(default_factory=dict)
    user: dict[str, UserEntry] = field(default_factory=dict)
    learnings: list[LearningEntry] = field(default_factory=list)
    preferences: list[PreferenceEntry] = field(default_factory=list)
    contexts: list[ContextEntry] = field(default_factory=list)
    tasks: dict[str, TaskEntry] = field(default_factory=dict)
    reminders: dict[str, ReminderEntry] = field(default_factory=dict)
    meta: dict[str, MetaEntry] = field(default_factory=dict)
    tombstoned: set[str] = field(default_factory=set)

    def identity_values(self) -> dict[str, str]:
        return {k: e.value for k, e in self.identity.items()}

    def user_values(self) -> dict[str, str]:
        return {k: e.value for k, e in self.user.items()}

    def meta_values(self) -> dict[str, str]:
        return {k: e.value for k, e in self.meta.items()}

    def all_entries(self) -> list[BrainEntry]:
        """Every live (non-tombstoned) entry in the snapshot."""
        return [
            *self.behaviors,
            *self.identity.values(),
            *self.user.values(),
            *self.learnings,
            *self.preferences,
            *self.contexts,
            *self.tasks.values(),
            *self.reminders.values(),
            *self.meta.values(),
        ]

    def find(self, entry_id: str) -> Optional[BrainEntry]:
        for entry in self.all_entries():
            if entry.id == entry_id:
                return entry
        return None

    def counts(self) -> dict[str, int]:
        return {
            "behaviors": len(self.behaviors),
            "identity": len(self.identity),
            "user": len(self.user),
            "learnings": len(self.learnings),
            "preferences": len(self.preferences),
            "contexts": len(self.contexts),
            "tasks": len(self.tasks),
            "reminders": len(self.reminders),
            "meta": len(self.meta),
        }
