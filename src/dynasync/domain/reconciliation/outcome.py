"""Per-record outcomes and the aggregate result of one reconciliation run.

A record either classifies (``ClassifiedRecord``) or fails (``RecordFailure``).
Failures are values, not exceptions: they are collected into the run result so
one malformed record never aborts the rest of the snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from dynasync.domain.model import Classification

FailureStage = Literal["classify", "delete"]


@dataclass(frozen=True, slots=True)
class ClassifiedRecord:
    index: int
    identity: str
    classification: Classification
    content_hash: str
    resurrected: bool = False


@dataclass(frozen=True, slots=True)
class RecordFailure:
    index: int | None
    identity: str | None
    error: Exception
    stage: FailureStage = "classify"

    @property
    def message(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


type RecordOutcome = ClassifiedRecord | RecordFailure


@dataclass(slots=True)
class ReconciliationResult:
    """Outcome of reconciling one snapshot against persisted state."""

    collection: str
    outcomes: list[RecordOutcome] = field(default_factory=list["RecordOutcome"])
    deleted_identities: list[str] = field(default_factory=list[str])
    delete_failures: list[RecordFailure] = field(default_factory=list[RecordFailure])

    @property
    def total_processed(self) -> int:
        return len(self.outcomes)

    @property
    def new(self) -> int:
        return self._count(Classification.NEW)

    @property
    def updated(self) -> int:
        return self._count(Classification.UPDATED)

    @property
    def unchanged(self) -> int:
        return self._count(Classification.UNCHANGED)

    @property
    def deleted(self) -> int:
        return len(self.deleted_identities)

    @property
    def resurrected(self) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if isinstance(outcome, ClassifiedRecord) and outcome.resurrected
        )

    @property
    def failures(self) -> list[RecordFailure]:
        record_failures = [o for o in self.outcomes if isinstance(o, RecordFailure)]
        return [*record_failures, *self.delete_failures]

    @property
    def errors(self) -> int:
        return len(self.failures)

    @property
    def error_ratio(self) -> float:
        if self.total_processed == 0:
            return 1.0 if self.errors else 0.0
        return self.errors / self.total_processed

    def counts(self) -> dict[str, int]:
        return {
            "total_processed": self.total_processed,
            "new": self.new,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "deleted": self.deleted,
            "errors": self.errors,
        }

    def _count(self, classification: Classification) -> int:
        return sum(
            1
            for outcome in self.outcomes
            if isinstance(outcome, ClassifiedRecord) and outcome.classification is classification
        )
