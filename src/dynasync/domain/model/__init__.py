"""Domain model for synchronized collections."""

from __future__ import annotations

from .enums import Classification, DataType, SyncStatus
from .record import SyncedRecord
from .sync_log import SyncLogEntry
from .tag import SchemaTag

__all__ = [
    "Classification",
    "DataType",
    "SchemaTag",
    "SyncLogEntry",
    "SyncStatus",
    "SyncedRecord",
]
