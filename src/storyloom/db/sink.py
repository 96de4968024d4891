"""Record sinks: where the batch orchestrator hands finished records.

DbRecordSink writes through the repository with one short session per call.
InMemoryRecordSink keeps everything in dicts for tests.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Callable

from sqlalchemy.orm import Session

from storyloom.db import repo
from storyloom.db.repo import REFERENCE_RECORD_ID
from storyloom.db.session import get_session
from storyloom.models.domain import GeneratedRecord

logger = logging.getLogger(__name__)


class DbRecordSink:
    """Persists records to the generated_records table."""

    def __init__(self, session_factory: Callable[[], Session] | None = None, db_path: Path | None = None):
        """Initialize sink.

        Args:
            session_factory: Callable returning a new Session. Defaults to the
                cached factory for db_path.
            db_path: Database path used when no session_factory is given.
        """
        self._session_factory = session_factory or (lambda: get_session(db_path))

    def save_record(self, record: GeneratedRecord) -> str:
        session = self._session_factory()
        try:
            repo.create_record(session, record)
            repo.commit(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        return record.record_id

    def promote_reference(self, record: GeneratedRecord) -> None:
        session = self._session_factory()
        try:
            repo.mark_promoted(session, record.record_id)
            repo.upsert_reference(session, record)
            repo.commit(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        logger.info(f"Reference now points at record {record.record_id}")

    def get_reference(self) -> GeneratedRecord | None:
        session = self._session_factory()
        try:
            return repo.get_reference(session)
        finally:
            session.close()


class InMemoryRecordSink:
    """Dict-backed sink with the same contract as DbRecordSink."""

    def __init__(self):
        self.records: dict[str, GeneratedRecord] = {}
        self.reference: GeneratedRecord | None = None
        self.promotions = 0

    def save_record(self, record: GeneratedRecord) -> str:
        self.records[record.record_id] = record
        return record.record_id

    def promote_reference(self, record: GeneratedRecord) -> None:
        self.promotions += 1
        self.reference = replace(record, record_id=REFERENCE_RECORD_ID)

    def get_reference(self) -> GeneratedRecord | None:
        return self.reference
