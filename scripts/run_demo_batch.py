#!/usr/bin/env python3
"""Run a demo batch against the mock oracle.

Exercises the full path without network access: unit runner -> exact-N
scene loop -> batch orchestrator -> SQLite record sink.

Usage:
    python scripts/run_demo_batch.py

This script:
1. Initializes the demo database
2. Runs four views sequentially through a scripted oracle
3. Prints per-item outcomes and the promoted reference
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

# Add src to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from storyloom.db.session import init_db  # noqa: E402
from storyloom.db.sink import DbRecordSink  # noqa: E402
from storyloom.models.domain import GenerationRequest, ViewSpec  # noqa: E402
from storyloom.models.types import StoryboardRequest  # noqa: E402
from storyloom.providers.mock import MockOracle, scenes_payload  # noqa: E402
from storyloom.worker.orchestrator import BatchOrchestrator, CancelToken  # noqa: E402
from storyloom.worker.units import StoryboardUnitRunner  # noqa: E402

# Constants
DEMO_DB_PATH = PROJECT_ROOT / "demo.db"

DEMO_VIEWS = [
    ViewSpec(id="wide", label="Establishing", instruction="Open on a wide establishing shot."),
    ViewSpec(id="close", label="Close-up", instruction="Stay close on the main character.", requires_reference=True),
    ViewSpec(id="pov", label="Point of view", instruction="Tell it from the character's eyes.", requires_reference=True),
    ViewSpec(id="aerial", label="Aerial", instruction="Drone shots over the city.", requires_reference=True),
]


def demo_responder(request: GenerationRequest) -> str:
    """Answer every view with exactly the requested number of scenes."""
    return scenes_payload(request.unit_count, prefix="Demo")


def print_progress(view: ViewSpec, index: int, total: int) -> None:
    print(f"[{index + 1}/{total}] {view.label}...")


def print_result(view: ViewSpec, index: int, total: int, outcome: str) -> None:
    print(f"[{index + 1}/{total}] {view.label}: {outcome}")


async def run_demo() -> int:
    init_db(DEMO_DB_PATH)
    request = StoryboardRequest(
        duration_sec=12,
        scene_count=3,
        style="noir",
        idea="A detective follows a stranger through the rain",
        language="en",
    )
    runner = StoryboardUnitRunner(MockOracle(demo_responder, delay_s=0.05), request)
    orchestrator = BatchOrchestrator(runner, sink=DbRecordSink(db_path=DEMO_DB_PATH))

    result = await orchestrator.run(
        DEMO_VIEWS,
        mode="sequential",
        inter_request_delay=0.1,
        cancel_token=CancelToken(),
        on_progress=print_progress,
        on_result=print_result,
    )

    print(f"Run {result.run_id}: {result.succeeded} succeeded, {result.failed} failed")
    print(f"Reference record: {result.reference_record_id}")
    return 0 if result.succeeded == len(DEMO_VIEWS) else 1


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return asyncio.run(run_demo())


if __name__ == "__main__":
    sys.exit(main())
