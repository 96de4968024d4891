"""Storyboard API endpoint.

POST /api/storyboard - Generate one storyboard (JSON scenes or natural text)
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, Depends

from storyloom.api.app import get_oracle
from storyloom.generation.storyboard import (
    generate_json_storyboard,
    generate_text_storyboard,
    resolve_audio,
)
from storyloom.generation.styles import resolve_style
from storyloom.models.types import (
    StoryboardJsonResponse,
    StoryboardRequest,
    StoryboardTextResponse,
)
from storyloom.providers.base import OracleBase

router = APIRouter()


@router.post(
    "/storyboard",
    response_model=Union[StoryboardJsonResponse, StoryboardTextResponse],
)
async def create_storyboard(
    body: StoryboardRequest,
    oracle: OracleBase = Depends(get_oracle),
) -> Union[StoryboardJsonResponse, StoryboardTextResponse]:
    """Generate a storyboard.

    Args:
        body: Validated storyboard request.
        oracle: Oracle client (injected).

    Returns:
        JSON storyboard with attempt count, or natural text with compliance info.

    Raises:
        TransportError: 502 if the oracle fails.
        EnvelopeParseError: 502 if the structured output is unparseable.
        ConfigurationError: 500 if the oracle credential is missing.
    """
    audio = resolve_audio(body, resolve_style(body.style))

    if body.output_mode == "natural":
        result = await generate_text_storyboard(oracle, body)
        return StoryboardTextResponse(
            storyboard_text=result.text,
            audio=audio,
            compliant=result.compliant,
            best_effort=result.best_effort,
            regenerated=result.regenerated,
            reasons=sorted(result.reasons),
        )

    storyboard, generation = await generate_json_storyboard(oracle, body)
    return StoryboardJsonResponse(
        storyboard=storyboard,
        audio=audio,
        attempts=generation.attempts,
    )
