"""Persisted snapshot of one remote record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False)
class SyncedRecord:
    """One record of a collection as last seen upstream.

    ``payload`` holds the canonical serialized form and ``content_hash`` its digest.
    Records are never removed; absence from a snapshot only sets ``is_deleted``.
    """

    collection: str
    identity: str
    payload: str
    content_hash: str
    first_seen_at: datetime = field(default_factory=_utcnow)
    last_updated_at: datetime = field(default_factory=_utcnow)
    update_count: int = 0
    is_deleted: bool = False
    deleted_at: datetime | None = None
