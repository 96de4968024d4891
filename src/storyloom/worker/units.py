"""Unit runners used by the batch orchestrator."""

from __future__ import annotations

import json
import logging
from typing import Any

from storyloom.core.errors import EmptyPayloadError
from storyloom.generation.prompts import view_directive
from storyloom.generation.storyboard import generate_json_storyboard, generate_text_storyboard
from storyloom.models.domain import UnitOutput, ViewSpec
from storyloom.models.types import StoryboardRequest
from storyloom.providers.base import OracleBase

logger = logging.getLogger(__name__)


def reference_text(reference: Any | None) -> str | None:
    """Render a reference (caller text or a promoted payload) for a prompt.

    Promoted storyboard payloads are reduced to their title and scene
    visuals, which is what later views need to stay consistent.
    """
    if reference is None:
        return None
    if isinstance(reference, str):
        return reference.strip() or None
    if isinstance(reference, dict):
        storyboard = reference.get("storyboard")
        if isinstance(storyboard, dict):
            lines = [str(storyboard.get("title", ""))]
            lines += [
                f"- {scene.get('visual', '')}"
                for scene in storyboard.get("scenes", [])
                if isinstance(scene, dict)
            ]
            return "\n".join(line for line in lines if line.strip())
        if isinstance(reference.get("storyboard_text"), str):
            return reference["storyboard_text"]
    return json.dumps(reference, ensure_ascii=False)


class StoryboardUnitRunner:
    """Generates one storyboard per view from a shared base request."""

    def __init__(self, oracle: OracleBase, base_request: StoryboardRequest):
        """Initialize runner.

        Args:
            oracle: Oracle adapter shared by every view of the batch.
            base_request: Storyboard request each view specializes.
        """
        self.oracle = oracle
        self.base_request = base_request

    async def run(self, view: ViewSpec, reference: Any | None) -> UnitOutput:
        """Generate the payload for one view.

        Raises:
            TransportError: If the oracle fails.
            EnvelopeParseError: If the structured output is unparseable.
            EmptyPayloadError: If generation produced nothing usable.
        """
        directive = view_directive(view.instruction, reference_text(reference))
        logger.debug(f"Generating view {view.id} ({self.base_request.output_mode})")

        if self.base_request.output_mode == "natural":
            result = await generate_text_storyboard(self.oracle, self.base_request, directive)
            if not result.text.strip():
                raise EmptyPayloadError(f"View '{view.id}' produced an empty storyboard")
            payload = {
                "format": "natural",
                "storyboard_text": result.text,
                "compliant": result.compliant,
                "reasons": sorted(result.reasons),
            }
            return UnitOutput(payload=payload, attempts=result.attempts)

        storyboard, generation = await generate_json_storyboard(
            self.oracle, self.base_request, directive
        )
        if not storyboard.scenes:
            raise EmptyPayloadError(f"View '{view.id}' produced no scenes")
        payload = {"format": "json", "storyboard": storyboard.model_dump()}
        return UnitOutput(payload=payload, attempts=generation.attempts)
