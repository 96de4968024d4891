"""Prompt builders for the oracle.

Prompt wording is data: these functions only assemble it. The structural
contract the detailed template must satisfy lives in generation.compliance,
and the template text below is written to match it.
"""

from __future__ import annotations

from storyloom.core.timing import format_number, segment_ranges
from storyloom.generation.compliance import (
    REQUIRED_SECTIONS,
    SENTINEL_VALUES,
    shot_list_header,
)
from storyloom.generation.styles import StoryboardStyle
from storyloom.models.domain import ChatMessage
from storyloom.models.types import StoryboardRequest

JSON_SYSTEM_PROMPT = (
    "You are a seasoned cinematic storyboard writer who produces structured JSON "
    "suitable for downstream AI video generation. Respond strictly with JSON that "
    "matches the supplied schema."
)

_NATURAL_SYSTEM_PROMPT = {
    "en": (
        "You are a seasoned cinematic storyteller who replies in English. Produce vivid "
        "natural-language storyboards following the requested structure."
    ),
    "ko": (
        "You are a seasoned cinematic storyteller who replies in Korean. Produce vivid "
        "natural-language storyboards following the requested structure."
    ),
}

_RESPOND_IN = {"en": "Respond in English only.", "ko": "한국어로 작성해."}


def natural_system_prompt(language: str) -> str:
    return _NATURAL_SYSTEM_PROMPT.get(language, _NATURAL_SYSTEM_PROMPT["ko"])


def _style_guidance(style: StoryboardStyle) -> str:
    return style.prompt.strip() or style.description or style.grading or style.label


def build_json_prompt(req: StoryboardRequest, style: StoryboardStyle) -> str:
    """User prompt for the structured (JSON scenes) path."""
    dialogue_rule = (
        "contain a short in-character sentence."
        if req.dialogue_mode == "auto"
        else 'always be an empty string ("").'
    )
    sfx_rule = (
        "contain an array of specific sound effect phrases (at least one)."
        if req.audio_preferences.sfx == "auto"
        else "be an empty array []."
    )
    lines = [
        "You are a professional storyboard writer. Produce structured JSON for AI video generation.",
        "",
        "Input details:",
        f"- Theme: {req.idea.strip()}",
        f"- Visual style: {style.label}",
        f"- Scene count: {req.scene_count}",
        f"- Total duration: {req.duration_sec} seconds",
        f"- Style guidance: {_style_guidance(style)}. Use cinematic language.",
        "",
        "Requirements:",
        f"- Return exactly {req.scene_count} scenes.",
        "- Each scene must include the fields visual, dialogue, sfx, and transition.",
        f"- Dialogue field must {dialogue_rule}",
        f"- SFX field must {sfx_rule}",
        "- Transition should clearly describe how the story moves to the next scene.",
        f"- Keep the wording concise so the entire JSON stays within roughly {req.max_characters} characters.",
        "",
        "Output format (strictly follow this structure):",
        '{"scenes": [{"visual": "...", "dialogue": "...", "sfx": ["..."], "transition": "..."}]}',
        "",
        _RESPOND_IN.get(req.language, _RESPOND_IN["ko"]),
    ]
    return "\n".join(lines)


def _audio_line(channel: str, mode: str, concrete_hint: str) -> str:
    if mode == "none":
        return f"- The {channel} line must read `{channel}: none`."
    return f"- On the {channel} line write concrete wording, for example {concrete_hint}."


def build_basic_prompt(req: StoryboardRequest, style: StoryboardStyle) -> str:
    """User prompt for the free-form scene-by-scene natural storyboard."""
    time_lines = [
        f"Scene {i + 1}: {format_number(start)}-{format_number(end)} seconds"
        for i, (start, end) in enumerate(segment_ranges(req.duration_sec, req.scene_count))
    ]
    dialogue_rule = (
        "- For the Dialogue line, include a concise in-character sentence when appropriate."
        if req.dialogue_mode == "auto"
        else "- For the Dialogue line, write '(none)'."
    )
    lines = [
        "Write a natural-language storyboard.",
        "",
        "Input details:",
        f"- Theme: {req.idea.strip()}",
        f"- Visual style: {style.label}",
        f"- Scene count: {req.scene_count}",
        f"- Total duration: {req.duration_sec} seconds",
        f"- Mood & grading: {style.grading}",
        "- Timeline per scene:",
        *time_lines,
        "",
        "Output format:",
        "Overall BGM: ...",
        "Voice Tone: ...",
        "Scene 1 (start-end seconds)",
        "- Visual: ...",
        "- Dialogue: ...",
        "- SFX: ...",
        "- Transition: ...",
        "",
        "Detailed guidelines:",
        _audio_line("Overall BGM", req.audio_preferences.bgm, f'"{style.bgm}"'),
        _audio_line("Voice Tone", req.audio_preferences.voice, f'"{style.vo_tone}"'),
        dialogue_rule,
        _audio_line("SFX", req.audio_preferences.sfx, ", ".join(style.sfx) or "ambient cues"),
        "- Each Scene heading must include its time range.",
        f"- Keep the entire response within approximately {req.max_characters} characters.",
        _RESPOND_IN.get(req.language, _RESPOND_IN["ko"]),
    ]
    return "\n".join(lines)


def build_detailed_prompt(req: StoryboardRequest, style: StoryboardStyle) -> str:
    """User prompt for the detailed template, whose structure is validated afterwards."""
    shot_count = max(req.scene_count, 1)
    shot_lines = [
        f"{format_number(start)}–{format_number(end)}s — {{shot size}} / {{camera move}} / {{action}}"
        for start, end in segment_ranges(req.duration_sec, shot_count)
    ]
    dialogue_value = (
        '"{short line}" ({voice tone})' if req.dialogue_mode == "auto" else '"(none)" (lip-sync off)'
    )
    bgm_value = "{music}" if req.audio_preferences.bgm == "auto" else "none"
    sfx_value = "{sound cues}" if req.audio_preferences.sfx == "auto" else "none"

    template = [
        "LOGLINE",
        "{main character + core action + location + tone, in up to 2 sentences}",
        "",
        shot_list_header(shot_count, req.duration_sec),
        *shot_lines,
        "",
        "VISUAL GRAMMAR",
        "style: {e.g. cinematic anime, painterly texture}",
        "lighting: {e.g. sunset backlight, volumetric light}",
        "lens: {e.g. 50mm, shallow depth of field}",
        "grade/texture: {e.g. subtle film grain, high contrast}",
        "",
        "PHYSICS & CONTINUITY",
        "{motion timing and consistency notes}",
        "",
        "AUDIO",
        f"bgm: {bgm_value}",
        f"sfx: {sfx_value}",
        f"dialogue: {dialogue_value}",
        "",
        "CONSTRAINTS",
        "no subtitles, no on-screen text, no logos, stable character design",
    ]
    brief = [
        f"- Theme: {req.idea.strip()}",
        f"- Visual style: {style.label}",
        f"- Tone & grading: {style.grading}",
        f"- Duration target: {format_number(req.duration_sec)} seconds",
    ]
    if style.prompt.strip():
        brief.append(f"- Style prompt reference: {style.prompt.strip()}")

    guidelines = [
        "- Replace every {placeholder} with concrete wording and keep the section headers exactly as shown.",
        f"- Keep exactly {shot_count} shot lines in the form `start–end — description`.",
        "- Never write the words auto or unspecified as a value; choose concrete wording.",
        "- Physics & Continuity should describe motion timing and consistency notes.",
        f"- Keep the final answer within roughly {req.max_characters} characters.",
        "- Do not use code fences or add explanations.",
        _RESPOND_IN.get(req.language, _RESPOND_IN["ko"]),
    ]
    return "\n".join(
        [
            "You are a cinematic prompt writer preparing material for a video model. "
            "Fill the following template with vivid, precise language.",
            "",
            "Project brief:",
            *brief,
            "",
            "Output format (replace braces with real content):",
            *template,
            "",
            "Guidelines:",
            *guidelines,
        ]
    )


def view_directive(instruction: str, reference: str | None) -> str:
    """Extra user-turn text that specializes a base request for one batch view."""
    lines = [f"View-specific direction: {instruction.strip()}"]
    if reference:
        lines.append(
            "Keep characters, props and palette consistent with this reference storyboard:"
        )
        lines.append(reference.strip())
    return "\n".join(lines)


def count_correction(returned: int, required: int) -> ChatMessage:
    """Corrective user turn for a wrong scene count."""
    return ChatMessage(
        role="user",
        content=(
            f"You returned {returned} scenes but I need exactly {required} scenes. "
            "Regenerate the entire response strictly following the schema with "
            f"{required} scene entries."
        ),
    )


def compliance_reminder(shot_count: int, duration_sec: float) -> ChatMessage:
    """Stricter user turn for the single regeneration of a non-compliant template."""
    headers = "\n".join(REQUIRED_SECTIONS)
    banned = ", ".join(sorted(SENTINEL_VALUES))
    return ChatMessage(
        role="user",
        content="\n".join(
            [
                "Your previous answer did not follow the required structure. Rewrite the whole answer.",
                "Use every one of these section headers verbatim, each on its own line:",
                headers,
                f"The shot list header must read exactly: {shot_list_header(shot_count, duration_sec)}",
                f"Write exactly {shot_count} shot lines covering 0 to {format_number(duration_sec)} seconds, "
                "each formatted as `start–end — shot size / camera move / action`.",
                "Do not leave any square brackets [ ] or curly braces { } in the answer.",
                f"Never write these words as a value: {banned}. Use concrete wording instead.",
            ]
        ),
    )
