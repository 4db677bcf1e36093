"""Tests for the PID-aware file lock."""

import json
import os
import time

import pytest

import brain.lock as lock_mod
from brain.errors import LockTimeout
from brain.lock import acquire, file_lock, is_pid_running, lock_path_for, read_lock_payload, release


class TestAcquireRelease:
    def test_creates_lock_with_payload(self, brain_path):
        handle = acquire(brain_path, purpose="append")
        try:
            payload = read_lock_payload(lock_path_for(brain_path))
            assert payload["pid"] == os.getpid()
            assert payload["token"] == handle.token
            assert payload["purpose"] == "append"
            assert "acquiredAt" in payload
            assert "hostname" in payload
        finally:
            assert release(handle) is True
        assert not lock_path_for(brain_path).exists()

    def test_context_manager_releases(self, brain_path):
        with file_lock(brain_path) as handle:
            assert handle.lock_path.exists()
        assert not lock_path_for(brain_path).exists()

    def test_release_when_not_owner(self, brain_path):
        handle = acquire(brain_path)
        lock_path = lock_path_for(brain_path)
        payload = read_lock_payload(lock_path)
        payload["token"] = "someone-else"
        lock_path.write_text(json.dumps(payload))
        assert release(handle) is False
        assert lock_path.exists()

    def test_custom_suffix(self, brain_path):
        with file_lock(brain_path, suffix=".migrate.lock") as handle:
            assert handle.lock_path.name == "brain.jsonl.migrate.lock"
            # the append lock is independent
            with file_lock(brain_path, timeout=0.5):
                pass


class TestContention:
    def test_timeout_when_held_by_live_process(self, brain_path):
        with file_lock(brain_path):
            start = time.monotonic()
            with pytest.raises(LockTimeout) as exc:
                acquire(brain_path, timeout=0.3, poll_interval=0.02, stale_after=9999)
            assert time.monotonic() - start >= 0.3
        assert exc.value.timeout == 0.3
        assert exc.value.lock_path.endswith("brain.jsonl.lock")
        assert exc.value.holder["pid"] == os.getpid()
        assert "Brain is busy" in str(exc.value)

    def test_dead_pid_reclaimed_immediately(self, brain_path, monkeypatch):
        lock_path = lock_path_for(brain_path)
        lock_path.write_text(json.dumps({"pid": 999999, "token": "old"}))
        monkeypatch.setattr(lock_mod, "is_pid_running", lambda pid: pid != 999999)

        start = time.monotonic()
        handle = acquire(brain_path, timeout=2.0)
        assert time.monotonic() - start < 1.0
        assert read_lock_payload(lock_path)["token"] == handle.token
        release(handle)

    def test_unreadable_payload_reclaimed_after_stale_age(self, brain_path):
        lock_path = lock_path_for(brain_path)
        lock_path.write_text("not json")
        old = time.time() - 60
        os.utime(lock_path, (old, old))

        handle = acquire(brain_path, timeout=1.0, stale_after=10)
        release(handle)
        assert not lock_path.exists()

    def test_fresh_unreadable_payload_is_respected(self, brain_path):
        lock_path = lock_path_for(brain_path)
        lock_path.write_text("")
        with pytest.raises(LockTimeout):
            acquire(brain_path, timeout=0.2, poll_interval=0.02, stale_after=60)
        assert lock_path.exists()


class TestPidCheck:
    def test_own_pid_running(self):
        assert is_pid_running(os.getpid()) is True

    def test_invalid_pid(self):
        assert is_pid_running(0) is False
        assert is_pid_running(-5) is False
