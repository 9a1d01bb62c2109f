from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dynasync.adapters.sqlalchemy.repositories import (
    SqlAlchemyRecordRepository,
    SqlAlchemySchemaTagRepository,
    SqlAlchemySyncLogRepository,
)
from dynasync.domain.model import DataType, SchemaTag, SyncLogEntry, SyncStatus
from dynasync.domain.reconciliation import ReconciliationEngine
from tests.helpers.records import ARTICLE_KEY, T0, FixedClock, make_article

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


def test_insert_and_lookup_fingerprints(sqlite_session: Session) -> None:
    repo = SqlAlchemyRecordRepository(sqlite_session)

    repo.insert("articles", "A-1", '{"a":1}', "h1", now=T0)
    repo.insert("articles", "A-2", '{"a":2}', "h2", now=T0)
    repo.insert("order-lines", "SO-1_1", "{}", "h3", now=T0)

    assert repo.fingerprints_of("articles") == {"A-1": "h1", "A-2": "h2"}
    assert repo.identities_of("order-lines") == {"SO-1_1"}
    record = repo.get("articles", "A-1")
    assert record is not None
    assert record.first_seen_at == T0
    assert record.update_count == 0
    assert record.is_deleted is False


def test_duplicate_insert_is_ignored(sqlite_session: Session) -> None:
    repo = SqlAlchemyRecordRepository(sqlite_session)

    repo.insert("articles", "A-1", '{"a":1}', "h1", now=T0)
    repo.insert("articles", "A-1", '{"a":2}', "h2", now=T0)

    assert repo.fingerprints_of("articles") == {"A-1": "h1"}


def test_update_overwrites_payload_and_counts(sqlite_session: Session) -> None:
    repo = SqlAlchemyRecordRepository(sqlite_session)
    later = T0 + timedelta(hours=1)
    repo.insert("articles", "A-1", '{"a":1}', "h1", now=T0)

    repo.update("articles", "A-1", '{"a":2}', "h2", now=later)
    repo.update("articles", "A-1", '{"a":3}', "h3", now=later)

    record = repo.get("articles", "A-1")
    assert record is not None
    assert record.payload == '{"a":3}'
    assert record.content_hash == "h3"
    assert record.update_count == 2
    assert record.last_updated_at == later
    assert record.first_seen_at == T0


def test_mark_deleted_hides_record_from_live_lookups(sqlite_session: Session) -> None:
    repo = SqlAlchemyRecordRepository(sqlite_session)
    later = T0 + timedelta(days=1)
    repo.insert("articles", "A-1", "{}", "h1", now=T0)

    repo.mark_deleted("articles", "A-1", now=later)

    assert repo.fingerprints_of("articles") == {}
    assert repo.identities_of("articles") == set()
    assert repo.deleted_fingerprints_of("articles") == {"A-1": "h1"}
    record = repo.get("articles", "A-1")
    assert record is not None
    assert record.is_deleted is True
    assert record.deleted_at == later
    assert record.payload == "{}"


def test_touch_revives_deleted_record(sqlite_session: Session) -> None:
    repo = SqlAlchemyRecordRepository(sqlite_session)
    repo.insert("articles", "A-1", "{}", "h1", now=T0)
    repo.mark_deleted("articles", "A-1", now=T0)

    repo.touch("articles", "A-1", now=T0 + timedelta(days=2))

    record = repo.get("articles", "A-1")
    assert record is not None
    assert record.is_deleted is False
    assert record.deleted_at is None
    assert repo.identities_of("articles") == {"A-1"}


def test_writes_to_unknown_identity_raise(sqlite_session: Session) -> None:
    repo = SqlAlchemyRecordRepository(sqlite_session)

    with pytest.raises(LookupError):
        repo.touch("articles", "missing", now=T0)
    with pytest.raises(LookupError):
        repo.mark_deleted("articles", "missing", now=T0)


def test_failed_write_leaves_the_session_usable(
    sqlite_engine: Engine, sqlite_session: Session
) -> None:
    repo = SqlAlchemyRecordRepository(sqlite_session)
    repo.insert("articles", "A-1", "{}", "h1", now=T0)

    with pytest.raises(IntegrityError):
        repo.insert("articles", "A-2", None, "h2", now=T0)  # type: ignore[arg-type]
    with pytest.raises(LookupError):
        repo.touch("articles", "missing", now=T0)
    repo.insert("articles", "A-3", "{}", "h3", now=T0)
    sqlite_session.commit()

    with Session(sqlite_engine) as fresh:
        assert SqlAlchemyRecordRepository(fresh).fingerprints_of("articles") == {
            "A-1": "h1",
            "A-3": "h3",
        }


def test_rollback_discards_writes_of_the_run(sqlite_session: Session) -> None:
    repo = SqlAlchemyRecordRepository(sqlite_session)
    repo.insert("articles", "A-1", "{}", "h1", now=T0)
    repo.touch("articles", "A-1", now=T0)

    sqlite_session.rollback()

    assert repo.fingerprints_of("articles") == {}


def test_engine_runs_against_sqlalchemy_store(sqlite_session: Session) -> None:
    repo = SqlAlchemyRecordRepository(sqlite_session)
    clock = FixedClock()
    engine = ReconciliationEngine(store=repo, clock=clock)

    engine.reconcile("articles", [make_article("A-1"), make_article("A-2")], key=ARTICLE_KEY)
    clock.advance(hours=1)
    engine.reconcile("articles", [make_article("A-2", SalesPrice=99)], key=ARTICLE_KEY)
    clock.advance(hours=1)
    result = engine.reconcile(
        "articles", [make_article("A-1"), make_article("A-2", SalesPrice=99)], key=ARTICLE_KEY
    )

    assert result.counts() == {
        "total_processed": 2,
        "new": 0,
        "updated": 0,
        "unchanged": 2,
        "deleted": 0,
        "errors": 0,
    }
    assert result.resurrected == 1
    revived = repo.get("articles", "A-1")
    assert revived is not None
    assert revived.is_deleted is False


def test_tag_catalog_upsert(sqlite_session: Session) -> None:
    repo = SqlAlchemySchemaTagRepository(sqlite_session)
    repo.upsert_tag(SchemaTag(collection="articles", path="ItemNumber", data_type=DataType.STRING))
    repo.upsert_tag(SchemaTag(collection="order-lines", path="LineNumber"))
    sqlite_session.flush()

    catalog = repo.tag_catalog("articles")
    catalog["ItemNumber"].occurrence_count = 7
    repo.upsert_tag(catalog["ItemNumber"])
    sqlite_session.commit()
    sqlite_session.expire_all()

    refreshed = repo.tag_catalog("articles")
    assert list(refreshed) == ["ItemNumber"]
    assert refreshed["ItemNumber"].occurrence_count == 7


def test_sync_log_latest_orders_newest_first(sqlite_session: Session) -> None:
    repo = SqlAlchemySyncLogRepository(sqlite_session)
    for hours in range(3):
        repo.add(
            SyncLogEntry(
                collection="articles",
                endpoint="BRINT34ReleasedProducts",
                status=SyncStatus.SUCCESS,
                records_count=hours,
                synced_at=T0 + timedelta(hours=hours),
            )
        )
    repo.add(
        SyncLogEntry(collection="order-lines", endpoint="SalesOrderLines", status=SyncStatus.ERROR)
    )
    sqlite_session.commit()

    latest = repo.latest("articles", limit=2)

    assert [entry.records_count for entry in latest] == [2, 1]
