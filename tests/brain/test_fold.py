"""Tests for folding the entry sequence into a MaterializedBrain."""

from brain.fold import fold_brain
from brain.schema import validate_entry


def _e(id, type, created="2024-01-01T00:00:00+00:00", **fields):
    return validate_entry({"id": id, "type": type, "created": created, **fields})


def _tomb(id, target):
    return _e(id, "tombstone", target_id=target)


class TestDeterminism:
    def test_same_sequence_same_snapshot(self):
        entries = [
            _e("b1", "behavior", category="do", text="Be terse"),
            _e("i1", "identity", key="name", value="rho"),
            _e("l1", "learning", text="Use uv"),
            _e("t1", "task", description="Ship"),
            _tomb("x1", "l1"),
        ]
        assert fold_brain(entries) == fold_brain(list(entries))

    def test_empty(self):
        brain = fold_brain([])
        assert brain.all_entries() == []
        assert brain.tombstoned == set()

    def test_order_preserved(self):
        brain = fold_brain([_e("l1", "learning", text="a"), _e("l2", "learning", text="b"), _e("l3", "learning", text="c")])
        assert [l.text for l in brain.learnings] == ["a", "b", "c"]


class TestTombstones:
    def test_tombstone_after_entry_removes(self):
        brain = fold_brain([_e("l1", "learning", text="x"), _tomb("t1", "l1")])
        assert brain.learnings == []
        assert "l1" in brain.tombstoned

    def test_tombstone_before_entry_has_no_effect(self):
        brain = fold_brain([_tomb("t1", "l1"), _e("l1", "learning", text="x")])
        assert [l.id for l in brain.learnings] == ["l1"]
        assert "l1" not in brain.tombstoned

    def test_tombstone_unknown_id_is_noop(self):
        brain = fold_brain([_e("l1", "learning", text="x"), _tomb("t1", "zzzz")])
        assert len(brain.learnings) == 1

    def test_tombstone_task(self):
        brain = fold_brain([_e("t1", "task", description="x"), _tomb("x", "t1")])
        assert brain.tasks == {}

    def test_keyed_tombstone_reveals_prior_value(self):
        brain = fold_brain(
            [
                _e("u1", "user", key="city", value="Paris"),
                _e("u2", "user", key="city", value="Berlin"),
                _tomb("x", "u2"),
            ]
        )
        assert brain.user_values() == {"city": "Paris"}

    def test_keyed_tombstone_of_only_value_removes_key(self):
        brain = fold_brain([_e("m1", "meta", key="k", value="v"), _tomb("x", "m1")])
        assert brain.meta == {}


class TestKeyedLastWriteWins:
    def test_identity_latest_wins(self):
        brain = fold_brain(
            [
                _e("i1", "identity", key="name", value="rho"),
                _e("i2", "identity", key="role", value="agent"),
                _e("i3", "identity", key="name", value="tau"),
            ]
        )
        assert brain.identity_values() == {"name": "tau", "role": "agent"}

    def test_task_updates_by_id(self):
        brain = fold_brain(
            [
                _e("t1", "task", description="Ship"),
                _e("t2", "task", description="Other"),
                _e("t1", "task", description="Ship", status="done", completedAt="2024-01-02"),
            ]
        )
        assert list(brain.tasks) == ["t1", "t2"]
        assert brain.tasks["t1"].status == "done"


class TestListDedup:
    def test_same_id_replaced_in_place(self):
        brain = fold_brain(
            [
                _e("l1", "learning", text="first"),
                _e("l2", "learning", text="second"),
                _e("l1", "learning", text="first, revised"),
            ]
        )
        assert [l.text for l in brain.learnings] == ["first, revised", "second"]

    def test_duplicate_text_collapses(self):
        brain = fold_brain(
            [
                _e("l1", "learning", text="Use uv"),
                _e("l2", "learning", text="other"),
                _e("l3", "learning", text="use UV "),
            ]
        )
        assert [l.id for l in brain.learnings] == ["l3", "l2"]

    def test_behavior_same_text_different_category_kept(self):
        brain = fold_brain(
            [
                _e("b1", "behavior", category="do", text="x"),
                _e("b2", "behavior", category="dont", text="x"),
            ]
        )
        assert len(brain.behaviors) == 2

    def test_context_dedup_by_path(self):
        brain = fold_brain(
            [
                _e("c1", "context", project="a", path="/p", content="old"),
                _e("c2", "context", project="a", path="/p", content="new"),
            ]
        )
        assert [c.content for c in brain.contexts] == ["new"]

    def test_tombstone_superseded_id_does_not_remove_replacement(self):
        brain = fold_brain(
            [
                _e("l1", "learning", text="x"),
                _e("l2", "learning", text="X"),
                _tomb("t", "l1"),
            ]
        )
        assert [l.id for l in brain.learnings] == ["l2"]


class TestLastWriteWins:
    def test_reminder_by_id(self):
        brain = fold_brain(
            [
                _e("r1", "reminder", description="Stretch", fireAt="2024-01-01T09:00:00"),
                _e("r1", "reminder", description="Stretch", fireAt="2024-01-02T09:00:00"),
            ]
        )
        assert list(brain.reminders) == ["r1"]
        assert brain.reminders["r1"].fire_at == "2024-01-02T09:00:00"

    def test_meta_by_key(self):
        brain = fold_brain(
            [
                _e("m1", "meta", key="migration.v2", value="skip"),
                _e("m2", "meta", key="migration.v2", value="done"),
            ]
        )
        assert brain.meta_values() == {"migration.v2": "done"}
        assert brain.meta["migration.v2"].id == "m2"

    def test_tombstoned_reminder_stays_gone(self):
        brain = fold_brain(
            [
                _e("r1", "reminder", description="Stretch", fireAt="2024-01-01T09:00:00"),
                _tomb("t1", "r1"),
            ]
        )
        assert brain.reminders == {}


class TestSnapshotHelpers:
    def test_find_and_counts(self):
        brain = fold_brain(
            [
                _e("b1", "behavior", category="value", text="Honesty"),
                _e("p1", "preference", text="Dark mode", category="UI"),
                _e("r1", "reminder", description="Stretch", fireAt="2024-01-01T09:00:00"),
            ]
        )
        assert brain.find("p1").text == "Dark mode"
        assert brain.find("nope") is None
        counts = brain.counts()
        assert counts["behaviors"] == 1
        assert counts["preferences"] == 1
        assert counts["reminders"] == 1
        assert counts["tasks"] == 0
