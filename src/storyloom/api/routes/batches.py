"""Batches API endpoint.

POST /api/batches - Generate one storyboard per view in a single request
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from storyloom.api.app import get_oracle, get_record_sink
from storyloom.core.errors import BatchFailedError
from storyloom.db.sink import DbRecordSink
from storyloom.models.domain import BatchResult, ViewSpec
from storyloom.models.types import BatchItemDetail, BatchRequest, BatchResponse
from storyloom.providers.base import OracleBase
from storyloom.worker.orchestrator import BatchOrchestrator, CancelToken
from storyloom.worker.units import StoryboardUnitRunner

logger = logging.getLogger(__name__)

router = APIRouter()


def _build_batch_response(result: BatchResult, ok: bool, reason: str | None = None) -> BatchResponse:
    """Build BatchResponse from a BatchResult."""
    items = [
        BatchItemDetail(
            index=item.index,
            view_id=item.view.id,
            label=item.view.label,
            status=item.status,
            outcome=item.outcome,
            reason=item.reason,
            record_id=item.record.record_id if item.record else None,
            attempts=item.record.attempts if item.record else None,
            payload=item.record.payload if item.record else None,
        )
        for item in result.items
    ]
    return BatchResponse(
        ok=ok,
        run_id=result.run_id,
        succeeded=result.succeeded,
        failed=result.failed,
        canceled=result.canceled,
        reference_record_id=result.reference_record_id,
        items=items,
        reason=reason,
    )


@router.post("/batches", response_model=BatchResponse)
async def create_batch(
    body: BatchRequest,
    oracle: OracleBase = Depends(get_oracle),
    sink: DbRecordSink = Depends(get_record_sink),
):
    """Run a batch of views.

    Args:
        body: Validated batch request.
        oracle: Oracle client (injected).
        sink: Record sink (injected).

    Returns:
        BatchResponse with one item per view, in request order.

    Raises:
        MissingReferenceError: 400 if the first view needs a reference.
    """
    views = [
        ViewSpec(
            id=v.id,
            label=v.label,
            instruction=v.instruction,
            requires_reference=v.requires_reference,
        )
        for v in body.views
    ]
    orchestrator = BatchOrchestrator(StoryboardUnitRunner(oracle, body.storyboard), sink=sink)

    try:
        result = await orchestrator.run(
            views,
            mode=body.mode,
            inter_request_delay=body.inter_request_delay,
            cancel_token=CancelToken(),
            reference=body.reference,
        )
    except BatchFailedError as e:
        response = _build_batch_response(
            e.result, ok=False, reason="No view could be generated."
        )
        return JSONResponse(status_code=502, content=response.model_dump())

    return _build_batch_response(result, ok=True)
