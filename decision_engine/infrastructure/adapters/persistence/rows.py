"""Row conversion helpers shared by the PostgreSQL repositories."""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any
from uuid import UUID


def to_json(value: Any) -> str:
    """Serialize a value for a `CAST(:param AS jsonb)` bind."""
    return json.dumps(value, default=str)


def from_json(value: Any, default: Any) -> Any:
    """Decode a JSONB column.

    The asyncpg dialect registers a JSON codec, so values normally arrive
    decoded; raw strings are accepted for drivers that skip the codec.
    """
    if value is None:
        return default
    if isinstance(value, str):
        return json.loads(value)
    return value


def to_uuid(value: Any) -> UUID | None:
    if value is None or isinstance(value, UUID):
        return value
    return UUID(str(value))


def to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    return value if isinstance(value, Decimal) else Decimal(str(value))
