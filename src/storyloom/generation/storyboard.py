"""Storyboard generation service.

Builds oracle requests from a StoryboardRequest, runs the structured or
natural path, and assembles the final storyboard envelope. Used by both the
single-storyboard endpoint and the batch unit runner.
"""

from __future__ import annotations

import logging

from storyloom.core.timing import format_number, segment_ranges
from storyloom.generation.cardinality import SceneGenerationResult, generate_scenes
from storyloom.generation.prompts import (
    JSON_SYSTEM_PROMPT,
    build_basic_prompt,
    build_detailed_prompt,
    build_json_prompt,
    natural_system_prompt,
)
from storyloom.generation.styles import StoryboardStyle, resolve_style
from storyloom.generation.template import TemplateResult, generate_basic_text, generate_template
from storyloom.models.domain import ChatMessage, GenerationRequest, OutputContract, Scene
from storyloom.models.types import (
    Storyboard,
    StoryboardAudio,
    StoryboardFormat,
    StoryboardRequest,
    StoryboardScene,
)
from storyloom.providers.base import OracleBase

logger = logging.getLogger(__name__)


def resolve_audio(req: StoryboardRequest, style: StoryboardStyle) -> StoryboardAudio:
    """Audio direction from the style, with channels switched off per preference."""
    prefs = req.audio_preferences
    return StoryboardAudio(
        bgm=(style.bgm.strip() or None) if prefs.bgm == "auto" else None,
        sfx=list(style.sfx) if prefs.sfx == "auto" else [],
        vo_tone=(style.vo_tone.strip() or None) if prefs.voice == "auto" else None,
    )


def _user_prompt(base: str, directive: str | None) -> str:
    return f"{base}\n\n{directive}" if directive else base


def build_scenes_request(
    req: StoryboardRequest,
    style: StoryboardStyle,
    directive: str | None = None,
) -> GenerationRequest:
    """Structured request for exactly req.scene_count scenes."""
    sfx_min_items = 1 if req.audio_preferences.sfx == "auto" else 0
    return GenerationRequest(
        messages=(
            ChatMessage(role="system", content=JSON_SYSTEM_PROMPT),
            ChatMessage(role="user", content=_user_prompt(build_json_prompt(req, style), directive)),
        ),
        contract=OutputContract.structured_items(req.scene_count, sfx_min_items=sfx_min_items),
        unit_count=req.scene_count,
    )


def build_text_request(
    req: StoryboardRequest,
    style: StoryboardStyle,
    directive: str | None = None,
) -> GenerationRequest:
    """Free-text request for the detailed or basic natural storyboard."""
    if req.template_mode == "detailed":
        prompt = build_detailed_prompt(req, style)
    else:
        prompt = build_basic_prompt(req, style)
    return GenerationRequest(
        messages=(
            ChatMessage(role="system", content=natural_system_prompt(req.language)),
            ChatMessage(role="user", content=_user_prompt(prompt, directive)),
        ),
        contract=OutputContract.free_text(),
        unit_count=req.scene_count,
    )


def assemble_storyboard(
    req: StoryboardRequest,
    style: StoryboardStyle,
    scenes: list[Scene],
) -> Storyboard:
    """Attach ids, time ranges and the envelope to exactly N generated scenes.

    Dialogue is blanked when dialogue is off, and sfx emptied when sfx is off,
    regardless of what the oracle returned.
    """
    audio = resolve_audio(req, style)
    ranges = segment_ranges(req.duration_sec, req.scene_count)
    board_scenes = [
        StoryboardScene(
            id=f"scene{i + 1}",
            time=f"{format_number(start)}-{format_number(end)}",
            visual=scene.visual,
            dialogue="" if req.dialogue_mode == "none" else scene.dialogue,
            sfx=[] if req.audio_preferences.sfx == "none" else list(scene.sfx),
            transition=scene.transition,
        )
        for i, (scene, (start, end)) in enumerate(zip(scenes, ranges))
    ]
    return Storyboard(
        title=req.idea.strip(),
        duration_sec=req.duration_sec,
        format=StoryboardFormat(grading=style.grading),
        audio=audio,
        scenes=board_scenes,
    )


async def generate_json_storyboard(
    oracle: OracleBase,
    req: StoryboardRequest,
    directive: str | None = None,
) -> tuple[Storyboard, SceneGenerationResult]:
    """Run the exact-N scene loop and assemble the storyboard.

    Raises:
        TransportError: If an oracle call fails.
        EnvelopeParseError: If the oracle output is unparseable.
    """
    style = resolve_style(req.style)
    result = await generate_scenes(oracle, build_scenes_request(req, style, directive), req.scene_count)
    logger.info(
        f"Generated {len(result.scenes)} scenes in {result.attempts} attempt(s)"
        + (" with local repair" if result.repaired else "")
    )
    return assemble_storyboard(req, style, result.scenes), result


async def generate_text_storyboard(
    oracle: OracleBase,
    req: StoryboardRequest,
    directive: str | None = None,
) -> TemplateResult:
    """Run the natural-language path selected by req.template_mode.

    Raises:
        TransportError: If the initial oracle call fails.
    """
    style = resolve_style(req.style)
    request = build_text_request(req, style, directive)
    if req.template_mode == "basic":
        return await generate_basic_text(oracle, request, style, req.language)
    return await generate_template(
        oracle,
        request,
        shot_count=req.scene_count,
        duration_sec=req.duration_sec,
        style=style,
        language=req.language,
    )
