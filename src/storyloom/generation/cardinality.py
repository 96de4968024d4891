"""Exact-N scene generation.

The oracle is asked for exactly N scenes. On a count mismatch the same
conversation is extended with the previous answer and a corrective turn, up
to MAX_ATTEMPTS calls in total. If the count is still wrong after the last
attempt the result is truncated or padded to N locally.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from storyloom.core.errors import EnvelopeParseError, TransportError
from storyloom.generation.prompts import count_correction
from storyloom.models.domain import ChatMessage, GenerationRequest, Scene
from storyloom.providers.base import OracleBase

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3

_REQUIRED_FIELDS = ("visual", "dialogue", "sfx", "transition")


@dataclass(frozen=True)
class SceneGenerationResult:
    """Scenes with length exactly N, plus how they were obtained.

    Attributes:
        scenes: Exactly N scenes.
        attempts: Oracle calls made, 1..MAX_ATTEMPTS.
        repaired: True when local truncation or padding was applied.
    """

    scenes: list[Scene]
    attempts: int
    repaired: bool


def _coerce_scene(raw: Any, position: int) -> Scene:
    if not isinstance(raw, dict):
        raise EnvelopeParseError(f"Scene {position} is not an object")
    missing = [name for name in _REQUIRED_FIELDS if name not in raw]
    if missing:
        raise EnvelopeParseError(f"Scene {position} is missing fields: {', '.join(missing)}")

    visual = raw["visual"]
    dialogue = raw["dialogue"]
    sfx = raw["sfx"]
    transition = raw["transition"]
    return Scene(
        visual="" if visual is None else str(visual),
        dialogue=dialogue if isinstance(dialogue, str) else "",
        sfx=[str(item) for item in sfx] if isinstance(sfx, list) else [],
        transition="" if transition is None else str(transition),
    )


def parse_scenes(content: str) -> list[Scene]:
    """Parse a `{"scenes": [...]}` envelope.

    Raises:
        EnvelopeParseError: If the text is not JSON, has no scenes sequence,
            or a scene lacks one of the required fields.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise EnvelopeParseError(f"Oracle output is not valid JSON: {e.msg}") from e

    if not isinstance(data, dict) or not isinstance(data.get("scenes"), list):
        raise EnvelopeParseError("Oracle output has no scenes array")

    return [_coerce_scene(raw, i + 1) for i, raw in enumerate(data["scenes"])]


def fit_to_count(scenes: list[Scene], count: int) -> list[Scene]:
    """Truncate to `count`, or pad with copies of the last scene (empty if none)."""
    if len(scenes) >= count:
        return scenes[:count]
    filler = scenes[-1] if scenes else Scene()
    return scenes + [filler.copy() for _ in range(count - len(scenes))]


async def generate_scenes(
    oracle: OracleBase,
    request: GenerationRequest,
    scene_count: int | None = None,
) -> SceneGenerationResult:
    """Obtain exactly N scenes from the oracle.

    Args:
        oracle: Oracle adapter.
        request: Base request; its messages start the conversation.
        scene_count: Target N. Defaults to request.unit_count.

    Returns:
        SceneGenerationResult with exactly N scenes.

    Raises:
        TransportError: If any attempt fails at the oracle.
        EnvelopeParseError: If any attempt returns an unparseable envelope.
    """
    target = scene_count if scene_count is not None else request.unit_count
    conversation = request
    scenes: list[Scene] = []
    attempts = 0

    while attempts < MAX_ATTEMPTS:
        attempts += 1
        response = await oracle.call(conversation)
        if not response.ok:
            raise TransportError(
                response.cause or "transport",
                status_code=response.status_code,
                detail=response.detail,
            )

        scenes = parse_scenes(response.text)
        if len(scenes) == target:
            return SceneGenerationResult(scenes=scenes, attempts=attempts, repaired=False)

        logger.info(
            f"Attempt {attempts}/{MAX_ATTEMPTS} returned {len(scenes)} scenes, expected {target}"
        )
        if attempts < MAX_ATTEMPTS:
            conversation = conversation.with_messages(
                ChatMessage(role="assistant", content=response.text),
                count_correction(len(scenes), target),
            )

    logger.warning(
        f"Scene count still {len(scenes)} after {MAX_ATTEMPTS} attempts; fitting to {target}"
    )
    return SceneGenerationResult(
        scenes=fit_to_count(scenes, target), attempts=attempts, repaired=True
    )
