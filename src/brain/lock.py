"""Advisory PID-aware file lock serializing appends to one log file."""

import json
import os
import socket
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import structlog

from .errors import LockTimeout

logger = structlog.get_logger()

DEFAULT_TIMEOUT = 5.0
DEFAULT_POLL_INTERVAL = 0.05
# Unreadable payloads younger than this may belong to a holder still writing it
DEFAULT_STALE_AFTER = 10.0


@dataclass
class LockHandle:
    lock_path: Path
    token: str
    pid: int
    acquired_at: str
    purpose: str = ""


def lock_path_for(target: str | Path, suffix: str = ".lock") -> Path:
    return Path(f"{Path(target).expanduser()}{suffix}")


def is_pid_running(pid: int) -> bool:
    """Return True if a process with this pid exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists, owned by someone else
        return True
    except OSError:
        return False
    return True


def read_lock_payload(lock_path: str | Path) -> dict | None:
    try:
        raw = json.loads(Path(lock_path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return raw if isinstance(raw, dict) else None


def _is_stale(lock_path: Path, payload: dict | None, stale_after: float) -> bool:
    if payload and isinstance(payload.get("pid"), int):
        return not is_pid_running(payload["pid"])
    try:
        age = time.time() - lock_path.stat().st_mtime
    except FileNotFoundError:
        return False
    return age > stale_after


def _try_create(lock_path: Path, purpose: str) -> LockHandle | None:
    try:
        fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        return None
    handle = LockHandle(
        lock_path=lock_path,
        token=uuid.uuid4().hex,
        pid=os.getpid(),
        acquired_at=datetime.now(timezone.utc).isoformat(),
        purpose=purpose,
    )
    payload = {
        "pid": handle.pid,
        "acquiredAt": handle.acquired_at,
        "purpose": purpose,
        "token": handle.token,
        "hostname": socket.gethostname(),
    }
    try:
        os.write(fd, json.dumps(payload).encode("utf-8"))
    finally:
        os.close(fd)
    return handle


def acquire(
    target: str | Path,
    timeout: float = DEFAULT_TIMEOUT,
    *,
    purpose: str = "append",
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    stale_after: float = DEFAULT_STALE_AFTER,
    suffix: str = ".lock",
) -> LockHandle:
    """Acquire the lock guarding ``target``.

    A lock held by a dead pid is reclaimed immediately. A lock held by a live
    process is retried every ``poll_interval`` seconds until ``timeout``
    elapses, then LockTimeout is raised.
    """
    lock_path = lock_path_for(target, suffix)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout
    attempts = 0

    while True:
        attempts += 1
        handle = _try_create(lock_path, purpose)
        if handle:
            if attempts > 1:
                logger.debug("brain_lock_acquired", lock=str(lock_path), attempts=attempts)
            return handle

        payload = read_lock_payload(lock_path)
        if _is_stale(lock_path, payload, stale_after):
            # Re-read right before unlinking so a lock freshly taken by
            # another reclaimer is left alone.
            if read_lock_payload(lock_path) == payload:
                logger.warning(
                    "brain_lock_stale_reclaimed",
                    lock=str(lock_path),
                    holder_pid=(payload or {}).get("pid"),
                )
                lock_path.unlink(missing_ok=True)
            continue

        if time.monotonic() >= deadline:
            logger.warning(
                "brain_lock_timeout",
                lock=str(lock_path),
                timeout=timeout,
                holder_pid=(payload or {}).get("pid"),
            )
            raise LockTimeout(lock_path, timeout, payload)
        time.sleep(poll_interval)


def release(handle: LockHandle) -> bool:
    """Delete the lock file if it is still owned by ``handle``."""
    payload = read_lock_payload(handle.lock_path)
    if payload is None or payload.get("token") != handle.token:
        logger.warning("brain_lock_release_not_owner", lock=str(handle.lock_path))
        return False
    handle.lock_path.unlink(missing_ok=True)
    return True


@contextmanager
def file_lock(
    target: str | Path,
    timeout: float = DEFAULT_TIMEOUT,
    *,
    purpose: str = "append",
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    stale_after: float = DEFAULT_STALE_AFTER,
    suffix: str = ".lock",
):
    handle = acquire(
        target,
        timeout,
        purpose=purpose,
        poll_interval=poll_interval,
        stale_after=stale_after,
        suffix=suffix,
    )
    try:
        yield handle
    finally:
        release(handle)
