"""Error taxonomy for the brain store."""


class BrainError(Exception):
    """Base class for brain store errors."""


class ValidationError(BrainError):
    """Entry is malformed or incomplete. Never retried automatically."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class LockTimeout(BrainError):
    """Could not acquire the log lock within the timeout. Safe to retry."""

    def __init__(self, lock_path, timeout: float, holder: dict | None = None):
        self.lock_path = str(lock_path)
        self.timeout = timeout
        self.holder = holder or {}
        pid = self.holder.get("pid")
        held_by = f" (held by pid {pid})" if pid else ""
        super().__init__(f"Brain is busy: lock {self.lock_path} not acquired within {timeout}s{held_by}")


class ParseError(BrainError):
    """A log or legacy line is not valid JSON. Counted, never fatal to reads."""

    def __init__(self, line_no: int, reason: str = ""):
        self.line_no = line_no
        super().__init__(f"Line {line_no} is not valid JSON: {reason}".rstrip(": "))


class NotFound(BrainError):
    """Referenced id or key does not exist in the materialized view."""

    def __init__(self, ref: str, kind: str = "entry"):
        self.ref = ref
        self.kind = kind
        super().__init__(f"{kind} '{ref}' not found")
