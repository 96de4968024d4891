"""Storyboard styles and auto-value derivation.

derive_auto_value() is the only place that turns an "auto" selection into
concrete phrasing. It is a pure function of the style and target language.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_STYLE_ID = "noir"


@dataclass(frozen=True)
class StoryboardStyle:
    """Visual/audio style applied to a storyboard."""

    id: str
    label: str
    description: str
    grading: str
    bgm: str
    sfx: tuple[str, ...] = field(default_factory=tuple)
    vo_tone: str = ""
    prompt: str = ""


FALLBACK_STYLES: tuple[StoryboardStyle, ...] = (
    StoryboardStyle(
        id="noir",
        label="Noir",
        description="High-contrast black and white film in a rain-soaked city",
        grading="charcoal tones, high contrast, film grain, deep shadows",
        bgm="low jazz with a slow drum beat",
        sfx=("rain drops", "neon buzzing", "leather footsteps"),
        vo_tone="low, rough and breathy",
        prompt=(
            "A rain-soaked noir alleyway with neon reflections and a lone figure "
            "in silhouette, cinematic lighting"
        ),
    ),
    StoryboardStyle(
        id="sci-fi",
        label="Sci-Fi",
        description="A future city full of neon and holograms",
        grading="cold blue and cyan tones, lens flares, holograms",
        bgm="synthesizer ambient with electronic loops",
        sfx=("spaceship hum", "laser pulse", "digital chime"),
        vo_tone="mechanical and calm",
        prompt=(
            "Futuristic neon-lit city skyline with hovering vehicles and holographic "
            "billboards, cinematic scale"
        ),
    ),
    StoryboardStyle(
        id="fantasy",
        label="Fantasy",
        description="A mysterious mood of glowing forests and magic",
        grading="warm gold tones with mystical light rays",
        bgm="grand orchestral strings with choir",
        sfx=("forest breeze", "magical sparkle", "deep drum"),
        vo_tone="warm, epic narration",
        prompt=(
            "Enchanted glowing forest with floating particles and ancient ruins, "
            "high fantasy illustration"
        ),
    ),
    StoryboardStyle(
        id="comic",
        label="Comic",
        description="Playful, humorous pop-art direction",
        grading="saturated colors, bold lines and speech balloons",
        bgm="fast-tempo punk/ska band sound",
        sfx=("whistle pop", "comic impact", "slapstick hit"),
        vo_tone="bright, exaggerated cartoon voice",
        prompt="Vibrant comic-book panel with bold outlines, dynamic action pose, halftone textures",
    ),
)

_STYLES_BY_ID = {style.id: style for style in FALLBACK_STYLES}


def resolve_style(style_id: str | None) -> StoryboardStyle:
    """Look up a style by id, falling back to the default and then the first style."""
    if style_id and style_id in _STYLES_BY_ID:
        return _STYLES_BY_ID[style_id]
    return _STYLES_BY_ID.get(DEFAULT_STYLE_ID, FALLBACK_STYLES[0])


# Lens phrasing has no style attribute, so it is fixed per language
_LENS_PHRASE = {
    "en": "50mm, shallow depth of field",
    "ko": "50mm 렌즈, 얕은 피사계 심도",
}


# Channel labels may carry a qualifier, e.g. "Overall BGM" or "Scene SFX"
_CHANNEL_SUFFIXES = ("bgm", "sfx", "voice tone")


def _normalize_label(label: str) -> str:
    key = " ".join(label.strip().lower().split())
    for suffix in _CHANNEL_SUFFIXES:
        if key.endswith(" " + suffix):
            return suffix
    return key


def derive_auto_value(label: str, style: StoryboardStyle, language: str) -> str | None:
    """Resolve an "auto" section value into concrete wording.

    Args:
        label: Section label as written in the document (case-insensitive).
        style: Active storyboard style.
        language: 'ko' or 'en'.

    Returns:
        Replacement text, or None when the label is not recognized.
    """
    key = _normalize_label(label)
    is_english = language == "en"

    if key == "style":
        return f"{style.label}, {style.description}" if is_english else f"{style.label} 스타일, {style.description}"
    if key == "lighting":
        return f"{style.grading} lighting" if is_english else f"{style.grading} 조명"
    if key == "lens":
        return _LENS_PHRASE["en" if is_english else "ko"]
    if key in ("grade/texture", "grade", "texture"):
        return style.grading
    if key == "bgm":
        return style.bgm or (f"music matching the {style.label} mood" if is_english else f"{style.label} 분위기의 음악")
    if key == "sfx":
        if style.sfx:
            return ", ".join(style.sfx)
        return "ambient room tone" if is_english else "주변 환경음"
    if key in ("voice", "voice tone"):
        return style.vo_tone or (f"a tone matching the {style.label} mood" if is_english else f"{style.label} 분위기의 톤")
    if key == "dialogue":
        return '"(none)" (lip-sync off)' if is_english else '"(없음)" (립싱크 없음)'
    return None
