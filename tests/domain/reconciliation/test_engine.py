from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from dynasync.domain.fingerprint import canonical_payload, fingerprint
from dynasync.domain.identity import FieldKey
from dynasync.domain.model import Classification
from dynasync.domain.reconciliation import (
    ClassifiedRecord,
    ReconciliationEngine,
    RecordFailure,
    reconcile_snapshot,
)
from tests.helpers.records import (
    ARTICLE_KEY,
    ORDER_LINE_KEY,
    FakeRecordRepository,
    FixedClock,
    make_article,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

ID_KEY = FieldKey("id")


def _engine(store: FakeRecordRepository, clock: FixedClock | None = None) -> ReconciliationEngine:
    return ReconciliationEngine(store=store, clock=clock or FixedClock())


def _counts(records: list[Mapping[str, object]], engine: ReconciliationEngine) -> dict[str, int]:
    return engine.reconcile("items", records, key=ID_KEY).counts()


def test_new_updated_deleted_across_three_runs() -> None:
    store = FakeRecordRepository()
    clock = FixedClock()
    engine = _engine(store, clock)

    first = _counts([{"id": "X1", "v": 1}], engine)
    clock.advance(hours=1)
    second = _counts([{"id": "X1", "v": 2}], engine)
    clock.advance(hours=1)
    third = _counts([], engine)

    assert first == {
        "total_processed": 1,
        "new": 1,
        "updated": 0,
        "unchanged": 0,
        "deleted": 0,
        "errors": 0,
    }
    assert (second["new"], second["updated"], second["unchanged"], second["deleted"]) == (0, 1, 0, 0)
    assert (third["new"], third["updated"], third["unchanged"], third["deleted"]) == (0, 0, 0, 1)

    record = store.get("items", "X1")
    assert record is not None
    assert record.is_deleted is True
    assert record.deleted_at == clock.now
    assert record.update_count == 1
    assert record.payload == '{"id":"X1","v":2}'


def test_second_run_with_same_snapshot_is_unchanged() -> None:
    store = FakeRecordRepository()
    engine = _engine(store)
    snapshot = [make_article("A-1"), make_article("A-2"), make_article("A-3", SalesPrice=3)]

    engine.reconcile("articles", snapshot, key=ARTICLE_KEY)
    result = engine.reconcile("articles", snapshot, key=ARTICLE_KEY)

    assert result.new == 0
    assert result.updated == 0
    assert result.deleted == 0
    assert result.unchanged == result.total_processed == 3


def test_unchanged_record_is_touched() -> None:
    store = FakeRecordRepository()
    clock = FixedClock()
    engine = _engine(store, clock)
    engine.reconcile("articles", [make_article("A-1")], key=ARTICLE_KEY)
    first_seen = clock.now

    later = clock.advance(days=1)
    engine.reconcile("articles", [make_article("A-1")], key=ARTICLE_KEY)

    record = store.get("articles", "A-1")
    assert record is not None
    assert record.first_seen_at == first_seen
    assert record.last_updated_at == later
    assert record.update_count == 0
    assert store.calls[-1] == ("touch", "A-1")


def test_only_missing_identities_are_deleted() -> None:
    store = FakeRecordRepository()
    engine = _engine(store)
    engine.reconcile("items", [{"id": "A"}, {"id": "B"}, {"id": "C"}], key=ID_KEY)

    result = engine.reconcile("items", [{"id": "A"}, {"id": "C", "changed": True}], key=ID_KEY)

    assert result.deleted_identities == ["B"]
    classified = {
        outcome.identity: outcome.classification
        for outcome in result.outcomes
        if isinstance(outcome, ClassifiedRecord)
    }
    assert classified == {"A": Classification.UNCHANGED, "C": Classification.UPDATED}
    assert store.identities_of("items") == {"A", "C"}


def test_reappearing_identity_is_revived_not_new() -> None:
    store = FakeRecordRepository()
    engine = _engine(store)
    engine.reconcile("items", [{"id": "A", "v": 1}, {"id": "B", "v": 1}], key=ID_KEY)
    engine.reconcile("items", [{"id": "A", "v": 1}], key=ID_KEY)

    result = engine.reconcile("items", [{"id": "A", "v": 1}, {"id": "B", "v": 1}], key=ID_KEY)

    assert result.new == 0
    assert result.unchanged == 2
    assert result.resurrected == 1
    revived = store.get("items", "B")
    assert revived is not None
    assert revived.is_deleted is False
    assert revived.deleted_at is None


def test_reappearing_identity_with_new_content_is_updated() -> None:
    store = FakeRecordRepository()
    engine = _engine(store)
    engine.reconcile("items", [{"id": "B", "v": 1}], key=ID_KEY)
    engine.reconcile("items", [], key=ID_KEY)

    result = engine.reconcile("items", [{"id": "B", "v": 2}], key=ID_KEY)

    assert result.updated == 1
    assert result.new == 0
    outcome = result.outcomes[0]
    assert isinstance(outcome, ClassifiedRecord)
    assert outcome.resurrected is True
    record = store.get("items", "B")
    assert record is not None
    assert record.is_deleted is False
    assert record.update_count == 1


def test_order_lines_with_same_line_number_are_distinct() -> None:
    store = FakeRecordRepository()
    lines = [
        {"SalesOrderNumber": "P1", "LineCreationSequenceNumber": 1, "Qty": 5},
        {"SalesOrderNumber": "P2", "LineCreationSequenceNumber": 1, "Qty": 5},
    ]

    result = _engine(store).reconcile("order-lines", lines, key=ORDER_LINE_KEY)

    assert result.new == 2
    assert store.identities_of("order-lines") == {"P1_1", "P2_1"}


def test_duplicate_identity_updates_against_first_copy() -> None:
    store = FakeRecordRepository()
    snapshot = [{"id": "D", "v": 1}, {"id": "D", "v": 2}]

    result = _engine(store).reconcile("items", snapshot, key=ID_KEY)

    assert [o.classification for o in result.outcomes if isinstance(o, ClassifiedRecord)] == [
        Classification.NEW,
        Classification.UPDATED,
    ]
    assert [call for call in store.calls if call[0] == "insert"] == [("insert", "D")]
    record = store.get("items", "D")
    assert record is not None
    assert record.payload == '{"id":"D","v":2}'


def test_identical_duplicate_is_unchanged() -> None:
    store = FakeRecordRepository()

    result = _engine(store).reconcile("items", [{"id": "D"}, {"id": "D"}], key=ID_KEY)

    assert (result.new, result.unchanged) == (1, 1)


def test_failing_record_does_not_abort_the_run() -> None:
    store = FakeRecordRepository(failing={"BAD"})
    snapshot = [{"id": "A"}, {"id": "BAD"}, {"id": "C"}]

    result = _engine(store).reconcile("items", snapshot, key=ID_KEY)

    assert result.new == 2
    assert result.errors == 1
    failure = result.outcomes[1]
    assert isinstance(failure, RecordFailure)
    assert failure.index == 1
    assert failure.identity == "BAD"
    assert failure.stage == "classify"
    assert "store rejected BAD" in failure.message
    assert store.identities_of("items") == {"A", "C"}


def test_unserializable_record_is_reported_as_failure() -> None:
    store = FakeRecordRepository()
    snapshot: list[Mapping[str, object]] = [
        {"id": "A", "when": datetime(2025, 1, 1, tzinfo=UTC)},
        {"id": "B"},
    ]

    result = _engine(store).reconcile("items", snapshot, key=ID_KEY)

    assert result.errors == 1
    assert result.new == 1
    failure = result.outcomes[0]
    assert isinstance(failure, RecordFailure)
    assert isinstance(failure.error, TypeError)
    assert failure.identity == "A"


def test_failed_record_still_counts_as_seen() -> None:
    store = FakeRecordRepository()
    engine = _engine(store)
    engine.reconcile("items", [{"id": "A"}], key=ID_KEY)
    store.failing.add("A")

    result = engine.reconcile("items", [{"id": "A", "v": 2}], key=ID_KEY)

    assert result.errors == 1
    assert result.deleted == 0


def test_unserializable_existing_record_is_not_deleted() -> None:
    store = FakeRecordRepository()
    engine = _engine(store)
    engine.reconcile("items", [{"id": "A", "v": 1}], key=ID_KEY)

    result = engine.reconcile("items", [{"id": "A", "v": Decimal("2")}], key=ID_KEY)

    assert result.errors == 1
    assert result.deleted == 0
    assert result.deleted_identities == []
    record = store.get("items", "A")
    assert record is not None
    assert record.is_deleted is False
    assert record.payload == canonical_payload({"id": "A", "v": 1})


def test_failing_delete_is_reported_with_delete_stage() -> None:
    store = FakeRecordRepository()
    engine = _engine(store)
    engine.reconcile("items", [{"id": "A"}, {"id": "B"}], key=ID_KEY)
    store.failing.add("B")

    result = engine.reconcile("items", [{"id": "A"}], key=ID_KEY)

    assert result.deleted == 0
    assert result.errors == 1
    (failure,) = result.failures
    assert failure.stage == "delete"
    assert failure.identity == "B"
    assert failure.index is None


def test_records_without_identity_share_the_unknown_bucket() -> None:
    store = FakeRecordRepository()

    result = _engine(store).reconcile(
        "articles", [{"ProductName": "a"}, {"ProductName": "b"}], key=ARTICLE_KEY
    )

    assert (result.new, result.updated) == (1, 1)
    assert store.identities_of("articles") == {"UNKNOWN"}


def test_reconcile_snapshot_uses_given_lookups() -> None:
    store = FakeRecordRepository()
    payload = canonical_payload({"id": "A"})
    store.insert("items", "A", payload, fingerprint(payload), now=FixedClock().now)

    result = reconcile_snapshot(
        [{"id": "A"}],
        collection="items",
        key=ID_KEY,
        existing_fingerprints={"A": fingerprint(payload)},
        existing_identities={"A"},
        store=store,
        now=FixedClock().now,
    )

    assert result.unchanged == 1
    assert result.error_ratio == 0.0


def test_collections_are_isolated() -> None:
    store = FakeRecordRepository()
    engine = _engine(store)
    engine.reconcile("articles", [make_article("A-1")], key=ARTICLE_KEY)

    result = engine.reconcile("order-lines", [], key=ORDER_LINE_KEY)

    assert result.deleted == 0
    assert store.identities_of("articles") == {"A-1"}
