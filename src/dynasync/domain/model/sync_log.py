"""Audit rows written once per collection sync."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .enums import SyncStatus


@dataclass(eq=False)
class SyncLogEntry:
    collection: str
    endpoint: str
    status: SyncStatus
    records_count: int = 0
    new_count: int = 0
    updated_count: int = 0
    unchanged_count: int = 0
    deleted_count: int = 0
    error_count: int = 0
    new_tags_count: int = 0
    message: str | None = None
    execution_time_ms: int = 0
    synced_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
