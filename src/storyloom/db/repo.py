"""Repository functions for generated records.

Encapsulates all SQLAlchemy queries and returns domain models (not
SQLAlchemy entities) to callers.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from storyloom.db.schema import Record
from storyloom.models.domain import GeneratedRecord, ViewSpec

if TYPE_CHECKING:
    from sqlalchemy.orm import Session as DbSession
else:
    DbSession = Session

__all__ = ["DbSession", "REFERENCE_RECORD_ID"]

# Well-known id of the single reference row
REFERENCE_RECORD_ID = "reference-image"


# ============================================================================
# Converters: SQLAlchemy -> Domain
# ============================================================================


def _record_to_entity(row: Record) -> GeneratedRecord:
    """Convert SQLAlchemy Record to domain entity."""
    return GeneratedRecord(
        record_id=row.record_id,
        run_id=row.run_id,
        view=ViewSpec(
            id=row.view_id,
            label=row.view_label,
            instruction=row.view_instruction,
            requires_reference=row.requires_reference,
        ),
        sequence_index=row.sequence_index,
        attempts=row.attempts,
        payload=json.loads(row.payload_json),
        promoted_to_reference=row.promoted_to_reference,
        created_at=row.created_at,
    )


def _entity_to_row(entity: GeneratedRecord, record_id: str, role: str) -> Record:
    return Record(
        record_id=record_id,
        run_id=entity.run_id,
        view_id=entity.view.id,
        view_label=entity.view.label,
        view_instruction=entity.view.instruction,
        requires_reference=entity.view.requires_reference,
        sequence_index=entity.sequence_index,
        attempts=entity.attempts,
        payload_json=json.dumps(entity.payload, ensure_ascii=False),
        role=role,
        promoted_to_reference=entity.promoted_to_reference,
        created_at=entity.created_at,
    )


# ============================================================================
# Record Repository
# ============================================================================


def create_record(session: DbSession, entity: GeneratedRecord) -> GeneratedRecord:
    """Create a history record."""
    session.add(_entity_to_row(entity, entity.record_id, "history"))
    return entity


def get_record(session: DbSession, record_id: str) -> GeneratedRecord | None:
    """Get record by ID."""
    row = session.query(Record).filter(Record.record_id == record_id).first()
    return _record_to_entity(row) if row else None


def get_records_for_run(session: DbSession, run_id: str) -> list[GeneratedRecord]:
    """Get history records of a run in sequence order."""
    rows = (
        session.query(Record)
        .filter(Record.run_id == run_id, Record.role == "history")
        .order_by(Record.sequence_index)
        .all()
    )
    return [_record_to_entity(r) for r in rows]


def mark_promoted(session: DbSession, record_id: str) -> None:
    """Flag a history record as the one promoted to reference."""
    row = session.query(Record).filter(Record.record_id == record_id).first()
    if row:
        row.promoted_to_reference = True


def upsert_reference(session: DbSession, entity: GeneratedRecord) -> None:
    """Store `entity` as the reference, replacing any previous reference."""
    existing = session.query(Record).filter(Record.record_id == REFERENCE_RECORD_ID).first()
    if existing is not None:
        session.delete(existing)
        session.flush()
    row = _entity_to_row(entity, REFERENCE_RECORD_ID, "reference")
    row.source_record_id = entity.record_id
    session.add(row)


def get_reference(session: DbSession) -> GeneratedRecord | None:
    """Get the current reference record, if any."""
    return get_record(session, REFERENCE_RECORD_ID)


def get_reference_source_id(session: DbSession) -> str | None:
    """Get the id of the history record the reference was copied from."""
    row = session.query(Record).filter(Record.record_id == REFERENCE_RECORD_ID).first()
    return row.source_record_id if row else None


def commit(session: DbSession) -> None:
    """Commit current transaction."""
    session.commit()
