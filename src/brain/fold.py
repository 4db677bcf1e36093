"""Single-pass fold of the entry sequence into a MaterializedBrain."""

from typing import Iterable

from .models import (
    ENTRY_MODELS,
    BehaviorEntry,
    BrainEntry,
    ContextEntry,
    IdentityEntry,
    LearningEntry,
    MaterializedBrain,
    MetaEntry,
    PreferenceEntry,
    ReminderEntry,
    TaskEntry,
    TombstoneEntry,
    UserEntry,
)


class _ListFold:
    """Ordered accumulation deduplicated by id and by the entry's dedup key.

    A later duplicate takes over the earlier entry's slot, so ordering follows
    first appearance of the fact.
    """

    def __init__(self):
        self._slots: dict[int, BrainEntry] = {}
        self._by_id: dict[str, int] = {}
        self._by_key: dict[tuple, int] = {}
        self._next = 0

    def upsert(self, entry: BrainEntry) -> None:
        key = entry.dedup_key()
        slot = self._by_id.get(entry.id)
        key_slot = self._by_key.get(key) if key is not None else None
        if slot is None:
            slot = key_slot
        elif key_slot is not None and key_slot != slot:
            self._drop(key_slot)

        if slot is None:
            slot = self._next
            self._next += 1
        else:
            self._unindex(slot)
        self._slots[slot] = entry
        self._by_id[entry.id] = slot
        if key is not None:
            self._by_key[key] = slot

    def remove(self, entry_id: str) -> None:
        slot = self._by_id.get(entry_id)
        if slot is not None:
            self._drop(slot)

    def _unindex(self, slot: int) -> None:
        old = self._slots[slot]
        if self._by_id.get(old.id) == slot:
            del self._by_id[old.id]
        old_key = old.dedup_key()
        if old_key is not None and self._by_key.get(old_key) == slot:
            del self._by_key[old_key]

    def _drop(self, slot: int) -> None:
        self._unindex(slot)
        del self._slots[slot]

    def snapshot(self) -> list:
        return list(self._slots.values())


class _KeyedFold:
    """Last-write-wins by ``entry.key`` with per-key history.

    Tombstoning the newest entry for a key reveals the previous one.
    """

    def __init__(self):
        self._history: dict[str, list[BrainEntry]] = {}
        self._keys_by_id: dict[str, set[str]] = {}

    def upsert(self, entry: BrainEntry) -> None:
        self._history.setdefault(entry.key, []).append(entry)
        self._keys_by_id.setdefault(entry.id, set()).add(entry.key)

    def remove(self, entry_id: str) -> None:
        for key in self._keys_by_id.pop(entry_id, ()):
            remaining = [e for e in self._history.get(key, []) if e.id != entry_id]
            if remaining:
                self._history[key] = remaining
            else:
                self._history.pop(key, None)

    def snapshot(self) -> dict:
        return {key: hist[-1] for key, hist in self._history.items()}


class _IdFold:
    """Last-write-wins by entry id (tasks, reminders)."""

    def __init__(self):
        self._items: dict[str, BrainEntry] = {}

    def upsert(self, entry: BrainEntry) -> None:
        self._items[entry.id] = entry

    def remove(self, entry_id: str) -> None:
        self._items.pop(entry_id, None)

    def snapshot(self) -> dict:
        return dict(self._items)


# container name on MaterializedBrain -> (entry class, fold strategy)
_RULES = {
    "behaviors": (BehaviorEntry, _ListFold),
    "identity": (IdentityEntry, _KeyedFold),
    "user": (UserEntry, _KeyedFold),
    "learnings": (LearningEntry, _ListFold),
    "preferences": (PreferenceEntry, _ListFold),
    "contexts": (ContextEntry, _ListFold),
    "tasks": (TaskEntry, _IdFold),
    "reminders": (ReminderEntry, _IdFold),
    "meta": (MetaEntry, _KeyedFold),
}

_CONTAINER_FOR = {cls: name for name, (cls, _) in _RULES.items()}

_unhandled = set(ENTRY_MODELS.values()) - set(_CONTAINER_FOR) - {TombstoneEntry}
if _unhandled:
    raise TypeError(f"No fold rule for entry types: {sorted(c.__name__ for c in _unhandled)}")


def fold_brain(entries: Iterable[BrainEntry]) -> MaterializedBrain:
    """Reduce entries, in log order, to the current-state snapshot.

    Pure and deterministic: the same sequence always yields an equal snapshot.
    Each entry is visited once.
    """
    containers = {name: strategy() for name, (_, strategy) in _RULES.items()}
    locations: dict[str, set[str]] = {}
    tombstoned: set[str] = set()

    for entry in entries:
        if isinstance(entry, TombstoneEntry):
            target = entry.target_id
            for name in locations.pop(target, ()):
                containers[name].remove(target)
            tombstoned.add(target)
            continue

        name = _CONTAINER_FOR[type(entry)]
        tombstoned.discard(entry.id)
        containers[name].upsert(entry)
        locations.setdefault(entry.id, set()).add(name)

    return MaterializedBrain(
        **{name: c.snapshot() for name, c in containers.items()},
        tombstoned=tombstoned,
    )
