"""Schema catalog entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import DataType


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False)
class SchemaTag:
    """A dotted field path observed in a collection's records."""

    collection: str
    path: str
    data_type: DataType = DataType.UNKNOWN
    occurrence_count: int = 0
    first_seen_at: datetime = field(default_factory=_utcnow)
    last_seen_at: datetime = field(default_factory=_utcnow)
    sample_value: str | None = None
