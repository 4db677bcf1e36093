"""Structural validation: partial dict in, fully typed Entry out."""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import ENTRY_ADAPTER, ENTRY_MODELS, SCHEMA_REGISTRY, BrainEntry


def new_id() -> str:
    return uuid.uuid4().hex[:8]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _describe(entry_type: str, exc: PydanticValidationError) -> ValidationError:
    """Translate the first pydantic error into a message naming the field."""
    err = exc.errors()[0]
    loc = [p for p in err.get("loc", ()) if p != entry_type]
    field_name = str(loc[0]) if loc else None
    schema = SCHEMA_REGISTRY.get(entry_type, {})

    if err["type"] == "missing":
        return ValidationError(f"{entry_type} requires {field_name}", field=field_name)
    if field_name in schema.get("enums", {}):
        allowed = ", ".join(schema["enums"][field_name])
        got = err.get("input")
        return ValidationError(
            f'{entry_type} field "{field_name}" must be one of: {allowed} (got "{got}")',
            field=field_name,
        )
    return ValidationError(f"{entry_type} field \"{field_name}\": {err['msg']}", field=field_name)


def validate_entry(raw: Any, *, fill_defaults: bool = True) -> BrainEntry:
    """Return a typed entry or raise ValidationError.

    With ``fill_defaults`` a missing ``id`` gets a random id and a missing
    ``created`` gets the current UTC time; log lines read back from disk are
    validated without them.
    """
    if isinstance(raw, BrainEntry):
        raw = raw.to_record()
    if not isinstance(raw, dict):
        raise ValidationError("entry must be an object")

    data = {k: v for k, v in raw.items() if v is not None or k not in ("id", "created")}
    entry_type = data.get("type")
    if not isinstance(entry_type, str) or not entry_type:
        raise ValidationError("entry requires type (string)", field="type")
    if entry_type not in ENTRY_MODELS:
        raise ValidationError(f'unknown type "{entry_type}"', field="type")

    if fill_defaults:
        data.setdefault("id", new_id())
        data.setdefault("created", now_iso())
    for key in ("id", "created"):
        if not isinstance(data.get(key), str) or not data[key]:
            raise ValidationError(f"entry requires {key} (string)", field=key)

    try:
        return ENTRY_ADAPTER.validate_python(data)
    except PydanticValidationError as e:
        raise _describe(entry_type, e) from e
