"""Batch orchestrator.

Drives one unit runner call per ViewSpec, sequentially or in parallel.

Architecture:
- BatchOrchestrator: dispatch, pacing, cancellation, outcome mapping, promotion
- BatchRun: run-scoped state, owns the per-item state machine
- UnitRunner: produces one payload for one view (see worker.units)
- RecordSink: persistence collaborator (see db.sink)

Per-item failures never abort the batch. The only batch-level failures are a
missing reference for the first view and a batch with zero successes.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, Sequence

from storyloom.core.errors import (
    BatchFailedError,
    EmptyPayloadError,
    EnvelopeParseError,
    MissingReferenceError,
    TransportError,
)
from storyloom.models.domain import (
    TERMINAL_STATUSES,
    BatchItemResult,
    BatchMode,
    BatchResult,
    GeneratedRecord,
    ItemStatus,
    Outcome,
    UnitOutput,
    ViewSpec,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ViewSpec, int, int], Any]
ResultCallback = Callable[[ViewSpec, int, int, Outcome], Any]
RecordCallback = Callable[[GeneratedRecord], Any]

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"running", "canceled"}),
    "running": frozenset({"succeeded", "failed", "canceled"}),
}


class UnitRunner(Protocol):
    """Produces the payload for one view."""

    async def run(self, view: ViewSpec, reference: Any | None) -> UnitOutput:
        ...


class RecordSink(Protocol):
    """Persistence collaborator for generated records."""

    def save_record(self, record: GeneratedRecord) -> str:
        ...

    def promote_reference(self, record: GeneratedRecord) -> None:
        ...

    def get_reference(self) -> GeneratedRecord | None:
        ...


class CancelToken:
    """Cooperative cancellation flag shared between a caller and one batch.

    Only the caller sets it. Once set it stays set.
    """

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_canceled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


async def sleep_or_cancel(token: CancelToken, delay: float) -> bool:
    """Sleep for `delay` seconds unless the token fires first.

    Returns:
        True if the token was (or became) canceled.
    """
    if token.is_canceled:
        return True
    if delay <= 0:
        return False
    try:
        await asyncio.wait_for(token.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True


def classify_failure(error: Exception) -> Outcome:
    """Map a per-item exception to a reported outcome."""
    if isinstance(error, TransportError):
        return "network"
    if isinstance(error, (EnvelopeParseError, EmptyPayloadError, MissingReferenceError)):
        return "failed"
    return "error"


async def _notify(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


@dataclass(frozen=True)
class BatchCallbacks:
    """Progress and result hooks. Each may be a plain function or a coroutine function."""

    on_progress: ProgressCallback | None = None
    on_result: ResultCallback | None = None
    on_record_generated: RecordCallback | None = None


@dataclass
class BatchRun:
    """Mutable state of one batch run.

    Created at batch start and discarded at batch end. Each item writes only
    its own slot, so parallel items never contend.
    """

    views: Sequence[ViewSpec]
    token: CancelToken
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    reference: Any | None = None
    reference_record_id: str | None = None
    callbacks: BatchCallbacks = field(default_factory=BatchCallbacks)
    items: list[BatchItemResult] = field(init=False)
    promotion_open: bool = field(init=False)
    # Sink writes share one SQLite connection; one at a time per run
    sink_lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self):
        # Only a run that starts without a reference promotes its first success
        self.promotion_open = self.reference is None
        self.items = [BatchItemResult(index=i, view=view) for i, view in enumerate(self.views)]

    @property
    def total(self) -> int:
        return len(self.items)

    def transition(self, index: int, status: ItemStatus) -> BatchItemResult:
        """Move item `index` to `status`.

        Raises:
            ValueError: If the item is terminal or the transition is not allowed.
        """
        item = self.items[index]
        if item.status in TERMINAL_STATUSES:
            raise ValueError(f"Item {index} is already {item.status}; cannot move to {status}")
        if status not in _ALLOWED_TRANSITIONS[item.status]:
            raise ValueError(f"Invalid transition for item {index}: {item.status} -> {status}")
        item.status = status
        return item

    def to_result(self) -> BatchResult:
        return BatchResult(
            run_id=self.run_id,
            items=list(self.items),
            was_canceled=self.token.is_canceled,
            reference_record_id=self.reference_record_id,
        )


class BatchOrchestrator:
    """Runs a sequence of views through a unit runner."""

    def __init__(self, unit_runner: UnitRunner, sink: RecordSink | None = None):
        """Initialize orchestrator.

        Args:
            unit_runner: Produces one payload per view.
            sink: Optional persistence collaborator for records and the reference.
        """
        self.unit_runner = unit_runner
        self.sink = sink

    async def run(
        self,
        views: Sequence[ViewSpec],
        mode: BatchMode = "sequential",
        inter_request_delay: float = 0.0,
        cancel_token: CancelToken | None = None,
        reference: Any | None = None,
        on_progress: ProgressCallback | None = None,
        on_result: ResultCallback | None = None,
        on_record_generated: RecordCallback | None = None,
        parallel_stagger: float = 0.0,
    ) -> BatchResult:
        """Run a batch.

        Args:
            views: Ordered views; results keep this order.
            mode: 'sequential' or 'parallel'.
            inter_request_delay: Pause after each sequential success, in seconds.
            cancel_token: Cooperative cancellation token.
            reference: Reference input supplied by the caller, if any.
            on_progress: Called as (view, index, total) before each dispatch.
            on_result: Called as (view, index, total, outcome) after each item.
            on_record_generated: Called with each new GeneratedRecord.
            parallel_stagger: In parallel mode, item i waits i * stagger before dispatch.

        Returns:
            BatchResult with one entry per view, in input order.

        Raises:
            MissingReferenceError: If views[0] needs a reference and none was given.
            BatchFailedError: If items were attempted and none succeeded.
        """
        if views and views[0].requires_reference and reference is None:
            raise MissingReferenceError(
                f"View '{views[0].id}' requires a reference input but none was supplied"
            )

        batch = BatchRun(
            views=views,
            token=cancel_token or CancelToken(),
            reference=reference,
            callbacks=BatchCallbacks(on_progress, on_result, on_record_generated),
        )
        logger.info(f"Starting batch {batch.run_id}: {batch.total} views, mode={mode}")

        if mode == "parallel":
            await self._run_parallel(batch, parallel_stagger)
        else:
            await self._run_sequential(batch, inter_request_delay)

        result = batch.to_result()
        logger.info(
            f"Batch {batch.run_id} finished: {result.succeeded} succeeded, "
            f"{result.failed} failed, {result.canceled} canceled"
        )
        if result.items and result.succeeded == 0 and not result.was_canceled:
            raise BatchFailedError(result)
        return result

    async def _run_sequential(self, batch: BatchRun, delay: float) -> None:
        for index in range(batch.total):
            if batch.token.is_canceled:
                await self._cancel_remaining(batch, index)
                return

            succeeded = await self._run_item(batch, index)

            is_last = index == batch.total - 1
            if succeeded and delay > 0 and not is_last:
                if await sleep_or_cancel(batch.token, delay):
                    logger.info(f"Batch {batch.run_id} canceled during pacing")
                    await self._cancel_remaining(batch, index + 1)
                    return

    async def _run_parallel(self, batch: BatchRun, stagger: float) -> None:
        async def dispatch(index: int) -> None:
            if stagger > 0 and index > 0:
                await sleep_or_cancel(batch.token, stagger * index)
            if batch.token.is_canceled:
                await self._cancel_item(batch, index)
                return
            await self._run_item(batch, index)

        await asyncio.gather(*(dispatch(i) for i in range(batch.total)))

    async def _cancel_item(self, batch: BatchRun, index: int) -> None:
        item = batch.transition(index, "canceled")
        item.outcome = "canceled"
        item.reason = "canceled"
        await _notify(batch.callbacks.on_result, item.view, index, batch.total, "canceled")

    async def _cancel_remaining(self, batch: BatchRun, start: int) -> None:
        logger.info(f"Batch {batch.run_id} canceled; skipping {batch.total - start} item(s)")
        for index in range(start, batch.total):
            await self._cancel_item(batch, index)

    async def _run_item(self, batch: BatchRun, index: int) -> bool:
        """Run one item to a terminal state. Returns True on success."""
        callbacks = batch.callbacks
        view = batch.views[index]

        await _notify(callbacks.on_progress, view, index, batch.total)
        item = batch.transition(index, "running")

        try:
            if view.requires_reference and batch.reference is None:
                raise MissingReferenceError(f"View '{view.id}' requires a reference and none is available")
            output = await self.unit_runner.run(view, batch.reference)
            record = await self._store(batch, view, index, output)
        except Exception as e:
            outcome = classify_failure(e)
            batch.transition(index, "failed")
            item.outcome = outcome
            item.reason = str(e) or type(e).__name__
            logger.warning(f"Batch {batch.run_id} item {index} ({view.id}) {outcome}: {item.reason}")
            await _notify(callbacks.on_result, view, index, batch.total, outcome)
            return False

        batch.transition(index, "succeeded")
        item.outcome = "success"
        item.record = record
        await _notify(callbacks.on_record_generated, record)
        await _notify(callbacks.on_result, view, index, batch.total, "success")
        return True

    async def _store(
        self, batch: BatchRun, view: ViewSpec, index: int, output: UnitOutput
    ) -> GeneratedRecord:
        """Persist a finished unit and promote it when the run still needs a reference.

        Sink calls are blocking, so they run in a worker thread. Batch state
        only points at the record once its promotion has been persisted.
        """
        record = GeneratedRecord(
            record_id=str(uuid.uuid4()),
            run_id=batch.run_id,
            view=view,
            sequence_index=index,
            attempts=output.attempts,
            payload=output.payload,
        )
        if self.sink is not None:
            async with batch.sink_lock:
                record.record_id = await asyncio.to_thread(self.sink.save_record, record)

        if not batch.promotion_open:
            return record

        # Claim the slot before awaiting so a concurrent item cannot promote too
        batch.promotion_open = False
        record.promoted_to_reference = True
        if self.sink is not None:
            try:
                async with batch.sink_lock:
                    await asyncio.to_thread(self.sink.promote_reference, record)
            except Exception:
                record.promoted_to_reference = False
                batch.promotion_open = True
                raise
        batch.reference = record.payload
        batch.reference_record_id = record.record_id
        logger.info(f"Promoted record {record.record_id} to reference")
        return record
