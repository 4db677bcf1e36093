"""Tests for the JSONL log store: read stats, append, dedup, contention."""

import json
import os
import subprocess
import sys
import textwrap
import threading
from pathlib import Path

import pytest

from brain.errors import ValidationError
from brain.lock import lock_path_for
from brain.store import (
    add_behavior,
    append_entry,
    append_with_dedup,
    deterministic_id,
    load_brain,
    natural_key,
    read_brain,
    set_identity,
)

SRC = Path(__file__).resolve().parents[2] / "src"


def _line(id, type="learning", **fields):
    return {"id": id, "type": type, "created": "2024-01-01T00:00:00+00:00", **fields}


class TestReadBrain:
    def test_missing_file(self, brain_path):
        result = read_brain(brain_path)
        assert result.entries == []
        assert result.stats.total == 0

    def test_empty_file(self, brain_path):
        brain_path.write_text("\n\n")
        result = read_brain(brain_path)
        assert result.entries == []
        assert result.stats.skipped == 0

    def test_bad_lines_counted(self, brain_path, write_lines):
        write_lines(brain_path, [_line("a1", text="one"), "{not json", _line("a2", text="two")])
        result = read_brain(brain_path)
        assert [e.id for e in result.entries] == ["a1", "a2"]
        assert result.stats.bad_lines == 1
        assert result.stats.truncated_tail is False

    def test_truncated_tail(self, brain_path, write_lines):
        write_lines(brain_path, [_line("a1", text="one"), '{"id": "a2", "ty'], trailing_newline=False)
        result = read_brain(brain_path)
        assert [e.id for e in result.entries] == ["a1"]
        assert result.stats.truncated_tail is True
        assert result.stats.bad_lines == 0

    def test_unparseable_last_line_with_newline_is_bad_line(self, brain_path, write_lines):
        write_lines(brain_path, [_line("a1", text="one"), "garbage"])
        stats = read_brain(brain_path).stats
        assert stats.bad_lines == 1
        assert stats.truncated_tail is False

    def test_invalid_entries_counted(self, brain_path, write_lines):
        write_lines(
            brain_path,
            [_line("a1", text="ok"), _line("a2", type="mystery"), _line("a3", type="task")],
        )
        result = read_brain(brain_path)
        assert [e.id for e in result.entries] == ["a1"]
        assert result.stats.invalid_lines == 2
        assert result.stats.skipped == 2

    def test_invalid_utf8_line_is_bad_line(self, brain_path):
        good = json.dumps(_line("a1", text="one")).encode("utf-8")
        brain_path.write_bytes(good + b"\n" + b'{"text": "\xff\xfe broken"}\n')
        result = read_brain(brain_path)
        assert [e.id for e in result.entries] == ["a1"]
        assert result.stats.bad_lines == 1
        assert result.stats.truncated_tail is False

    def test_invalid_utf8_tail_is_truncated(self, brain_path):
        good = json.dumps(_line("a1", text="one")).encode("utf-8")
        brain_path.write_bytes(good + b"\n" + b'{"id": "a2", "text": "caf\xc3')
        result = read_brain(brain_path)
        assert [e.id for e in result.entries] == ["a1"]
        assert result.stats.truncated_tail is True
        assert result.stats.bad_lines == 0

    def test_invalid_utf8_does_not_break_load(self, brain_path):
        good = json.dumps(_line("a1", text="café")).encode("utf-8")
        brain_path.write_bytes(b"\xff\xff\n" + good + b"\n")
        assert [l.text for l in load_brain(brain_path).learnings] == ["café"]


class TestAppend:
    def test_append_returns_stored_entry(self, brain_path):
        entry = append_entry(brain_path, {"type": "learning", "text": "Prefer pathlib"})
        lines = brain_path.read_text().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["id"] == entry.id
        assert brain_path.read_text().endswith("\n")
        assert not lock_path_for(brain_path).exists()

    def test_invalid_entry_not_written(self, brain_path):
        with pytest.raises(ValidationError):
            append_entry(brain_path, {"type": "task"})
        assert not brain_path.exists()

    def test_creates_parent_dir(self, tmp_path):
        path = tmp_path / "deep" / "dir" / "brain.jsonl"
        append_entry(path, {"type": "learning", "text": "x"})
        assert path.exists()

    def test_unicode_preserved(self, brain_path):
        append_entry(brain_path, {"type": "learning", "text": "café ☕"})
        assert "café ☕" in brain_path.read_text(encoding="utf-8")


class TestDeterministicIds:
    def test_sha256_prefix(self):
        import hashlib

        expected = hashlib.sha256(b"identity:name").hexdigest()[:8]
        assert deterministic_id("identity", "name") == expected

    def test_natural_keys(self):
        assert natural_key({"type": "behavior", "category": "do", "text": "Be terse"}) == "do:Be terse"
        assert natural_key({"type": "identity", "key": "name", "value": "rho"}) == "name"
        assert natural_key({"type": "learning", "text": "x"}) is None

    def test_set_identity_stable_id(self, brain_path):
        first = set_identity(brain_path, "name", "rho")
        second = set_identity(brain_path, "name", "tau")
        assert first.id == second.id == deterministic_id("identity", "name")
        assert load_brain(brain_path).identity_values() == {"name": "tau"}


class TestAppendWithDedup:
    def test_behavior_idempotent(self, brain_path):
        entry, created = add_behavior(brain_path, "do", "Be terse")
        again, created_again = add_behavior(brain_path, "do", "Be terse")
        assert created is True
        assert created_again is False
        assert again.id == entry.id
        assert len(brain_path.read_text().splitlines()) == 1

    def test_learning_normalized_text(self, brain_path):
        append_with_dedup(brain_path, {"type": "learning", "text": "Use uv"})
        existing, created = append_with_dedup(brain_path, {"type": "learning", "text": "  USE UV "})
        assert created is False
        assert existing.text == "Use uv"
        assert len(brain_path.read_text().splitlines()) == 1

    def test_context_by_path(self, brain_path):
        append_with_dedup(brain_path, {"type": "context", "project": "a", "path": "/p", "content": "one"})
        _, created = append_with_dedup(brain_path, {"type": "context", "project": "b", "path": "/p", "content": "two"})
        assert created is False

    def test_tasks_never_deduplicated(self, brain_path):
        append_with_dedup(brain_path, {"type": "task", "description": "same"})
        _, created = append_with_dedup(brain_path, {"type": "task", "description": "same"})
        assert created is True

    def test_tombstoned_fact_can_be_readded(self, brain_path):
        entry, _ = add_behavior(brain_path, "dont", "Use emojis")
        append_entry(brain_path, {"type": "tombstone", "target_id": entry.id})
        _, created = add_behavior(brain_path, "dont", "Use emojis")
        assert created is True
        assert len(load_brain(brain_path).behaviors) == 1


class TestContention:
    def test_threads_append_whole_lines(self, brain_path):
        per_thread = 25

        def writer(n):
            for i in range(per_thread):
                append_entry(brain_path, {"type": "task", "description": f"t{n}-{i}"}, timeout=30)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        result = read_brain(brain_path)
        assert result.stats.skipped == 0
        assert len(result.entries) == 4 * per_thread
        assert len({e.id for e in result.entries}) == 4 * per_thread

    def test_processes_append_whole_lines(self, brain_path):
        per_proc = 20
        script = textwrap.dedent(
            """
            import sys
            from brain.store import append_entry
            path, n, count = sys.argv[1], sys.argv[2], int(sys.argv[3])
            for i in range(count):
                append_entry(path, {"type": "task", "description": f"p{n}-{i}"}, timeout=30)
            """
        )
        env = {**os.environ, "PYTHONPATH": str(SRC)}
        procs = [
            subprocess.Popen([sys.executable, "-c", script, str(brain_path), str(n), str(per_proc)], env=env)
            for n in range(4)
        ]
        for p in procs:
            assert p.wait(timeout=120) == 0

        result = read_brain(brain_path)
        assert result.stats.skipped == 0
        descriptions = {e.description for e in result.entries}
        assert len(descriptions) == 4 * per_proc

    def test_concurrent_dedup_appends_once(self, brain_path):
        barrier = threading.Barrier(4)
        outcomes = []

        def writer():
            barrier.wait()
            _, created = add_behavior(brain_path, "value", "Honesty", timeout=30)
            outcomes.append(created)

        threads = [threading.Thread(target=writer) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count(True) == 1
        assert len(brain_path.read_text().splitlines()) == 1
