"""Tests for record persistence."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from storyloom.db import repo
from storyloom.db.repo import REFERENCE_RECORD_ID
from storyloom.db.schema import Record
from storyloom.db.session import dispose_stores, get_engine, get_store, init_db
from storyloom.db.sink import DbRecordSink, InMemoryRecordSink
from storyloom.models.domain import GeneratedRecord, ViewSpec


def make_record(record_id: str = "rec-1", run_id: str = "run-1", index: int = 0) -> GeneratedRecord:
    return GeneratedRecord(
        record_id=record_id,
        run_id=run_id,
        view=ViewSpec(id=f"view-{index}", label="Front", instruction="Front view"),
        sequence_index=index,
        attempts=2,
        payload={"storyboard": {"title": "밤의 추격", "scenes": []}},
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class TestRecordRepository:
    """Repository functions."""

    def test_create_and_get_round_trip(self, session):
        repo.create_record(session, make_record())
        repo.commit(session)

        fetched = repo.get_record(session, "rec-1")
        assert fetched is not None
        assert fetched.view == ViewSpec(id="view-0", label="Front", instruction="Front view")
        assert fetched.attempts == 2
        assert fetched.payload["storyboard"]["title"] == "밤의 추격"
        assert not fetched.promoted_to_reference

    def test_missing_record_is_none(self, session):
        assert repo.get_record(session, "nope") is None
        assert repo.get_reference(session) is None

    def test_records_for_run_in_sequence_order(self, session):
        for record_id, index in (("b", 2), ("a", 0), ("c", 1)):
            repo.create_record(session, make_record(record_id, index=index))
        repo.create_record(session, make_record("other", run_id="run-2"))
        repo.commit(session)

        records = repo.get_records_for_run(session, "run-1")
        assert [r.record_id for r in records] == ["a", "c", "b"]

    def test_slot_uniqueness_enforced(self, session):
        """A run stores one history record per view slot."""
        repo.create_record(session, make_record("x"))
        repo.create_record(session, make_record("y"))
        with pytest.raises(IntegrityError):
            repo.commit(session)


class TestReference:
    """The reference row is a single overwritten sentinel row."""

    def test_upsert_overwrites(self, session):
        first = make_record("rec-1")
        second = make_record("rec-2", run_id="run-2")
        repo.create_record(session, first)
        repo.create_record(session, second)
        repo.upsert_reference(session, first)
        repo.commit(session)
        repo.upsert_reference(session, second)
        repo.commit(session)

        reference = repo.get_reference(session)
        assert reference.record_id == REFERENCE_RECORD_ID
        assert reference.run_id == "run-2"
        assert repo.get_reference_source_id(session) == "rec-2"
        assert session.query(Record).filter(Record.role == "reference").count() == 1

    def test_reference_excluded_from_run_history(self, session):
        record = make_record()
        repo.create_record(session, record)
        repo.upsert_reference(session, record)
        repo.commit(session)

        assert [r.record_id for r in repo.get_records_for_run(session, "run-1")] == ["rec-1"]


class TestDbRecordSink:
    """Sink over the repository."""

    def test_save_and_promote(self, session_factory):
        sink = DbRecordSink(session_factory=session_factory)
        record = make_record()
        record.promoted_to_reference = True

        assert sink.save_record(record) == "rec-1"
        sink.promote_reference(record)

        reference = sink.get_reference()
        assert reference.record_id == REFERENCE_RECORD_ID
        assert reference.payload == record.payload

        session = session_factory()
        try:
            assert repo.get_record(session, "rec-1").promoted_to_reference
        finally:
            session.close()

    def test_no_reference_initially(self, session_factory):
        assert DbRecordSink(session_factory=session_factory).get_reference() is None


class TestInMemoryRecordSink:
    def test_contract(self):
        sink = InMemoryRecordSink()
        record = make_record()

        assert sink.save_record(record) == "rec-1"
        assert sink.get_reference() is None
        sink.promote_reference(record)
        assert sink.get_reference().record_id == REFERENCE_RECORD_ID
        assert sink.records["rec-1"] is record


class TestRecordStore:
    """File-backed store cache."""

    def test_store_cached_per_path(self, tmp_path):
        db_path = tmp_path / "nested" / "records.db"
        try:
            first = get_store(db_path)
            assert get_store(tmp_path / "nested" / ".." / "nested" / "records.db") is first
            assert get_engine(db_path) is first.engine
            assert db_path.parent.is_dir()
        finally:
            dispose_stores()

    def test_dispose_forgets_stores(self, tmp_path):
        db_path = tmp_path / "records.db"
        first = get_store(db_path)
        dispose_stores()
        try:
            assert get_store(db_path) is not first
        finally:
            dispose_stores()

    def test_sink_on_file_database(self, tmp_path):
        db_path = tmp_path / "records.db"
        try:
            init_db(db_path)
            sink = DbRecordSink(db_path=db_path)
            record = make_record()
            sink.save_record(record)
            sink.promote_reference(record)

            assert sink.get_reference().payload == record.payload
        finally:
            dispose_stores()
