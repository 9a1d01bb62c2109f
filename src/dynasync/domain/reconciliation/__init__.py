"""Incremental reconciliation of remote snapshots against persisted records."""

from __future__ import annotations

from .engine import Clock, ReconciliationEngine, reconcile_snapshot, utcnow
from .outcome import (
    ClassifiedRecord,
    ReconciliationResult,
    RecordFailure,
    RecordOutcome,
)

__all__ = [
    "ClassifiedRecord",
    "Clock",
    "ReconciliationEngine",
    "ReconciliationResult",
    "RecordFailure",
    "RecordOutcome",
    "reconcile_snapshot",
    "utcnow",
]
