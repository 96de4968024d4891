"""Records API endpoints.

GET /api/records/reference - Get the current reference record
GET /api/records/{record_id} - Get one generated record
GET /api/runs/{run_id}/records - List the records of a batch run
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from storyloom.api.app import get_db_session
from storyloom.db import repo
from storyloom.db.repo import REFERENCE_RECORD_ID, DbSession
from storyloom.models.domain import GeneratedRecord
from storyloom.models.types import RecordDetail

router = APIRouter()


def _build_record_detail(record: GeneratedRecord, source_record_id: str | None = None) -> RecordDetail:
    """Build RecordDetail from a GeneratedRecord."""
    return RecordDetail(
        record_id=record.record_id,
        run_id=record.run_id,
        view_id=record.view.id,
        view_label=record.view.label,
        sequence_index=record.sequence_index,
        attempts=record.attempts,
        role="reference" if record.record_id == REFERENCE_RECORD_ID else "history",
        promoted_to_reference=record.promoted_to_reference,
        source_record_id=source_record_id,
        payload=record.payload,
    )


@router.get("/records/reference", response_model=RecordDetail)
def get_reference(session: DbSession = Depends(get_db_session)) -> RecordDetail:
    """Get the current reference record.

    Raises:
        HTTPException: 404 if no record has been promoted yet.
    """
    record = repo.get_reference(session)
    if record is None:
        raise HTTPException(status_code=404, detail="No reference record")
    return _build_record_detail(record, repo.get_reference_source_id(session))


@router.get("/records/{record_id}", response_model=RecordDetail)
def get_record(record_id: str, session: DbSession = Depends(get_db_session)) -> RecordDetail:
    """Get one record.

    Raises:
        HTTPException: 404 if record not found.
    """
    record = repo.get_record(session, record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Record not found: {record_id}")
    return _build_record_detail(record)


@router.get("/runs/{run_id}/records", response_model=list[RecordDetail])
def list_run_records(run_id: str, session: DbSession = Depends(get_db_session)) -> list[RecordDetail]:
    """List the history records of a run in sequence order."""
    return [_build_record_detail(r) for r in repo.get_records_for_run(session, run_id)]
