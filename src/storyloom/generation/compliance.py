"""Structural validation and deterministic repair of the detailed template.

The predicates here are independent: each returns a reason code or None, and
validate_template() collects all of them. Repair only strips leaked prompt
headings and rewrites the shot list header, so applying it twice gives the
same text as applying it once.
"""

from __future__ import annotations

import re

from storyloom.generation.styles import StoryboardStyle, derive_auto_value
from storyloom.models.domain import ValidationResult

REQUIRED_SECTIONS: tuple[str, ...] = (
    "LOGLINE",
    "SHOT LIST",
    "VISUAL GRAMMAR",
    "PHYSICS & CONTINUITY",
    "AUDIO",
    "CONSTRAINTS",
)

# Prompt scaffolding the oracle sometimes echoes back into its answer
LEAKED_HEADING_PREFIXES: tuple[str, ...] = (
    "Project brief:",
    "Guidelines:",
    "Output format",
    "Detailed guidelines:",
    "Input details:",
    "프로젝트 개요:",
    "작성 지침:",
    "출력 형식",
    "세부 지침:",
    "입력 정보:",
)

SENTINEL_VALUES: frozenset[str] = frozenset({"auto", "unspecified", "자동", "미정"})

REASON_PLACEHOLDERS = "placeholders-present"
REASON_MISSING_SECTIONS = "missing-sections"
REASON_SHOT_COUNT = "invalid-shot-count"

_PLACEHOLDER_RE = re.compile(r"[\[\]{}]")

# "0–2.5s — wide shot ..." with en dash, em dash or hyphen separators
_SHOT_LINE_RE = re.compile(
    r"^\s*(?:[-*•]\s*)?\d+(?:\.\d+)?\s*s?\s*[–—-]\s*\d+(?:\.\d+)?\s*s?\s+[–—-]+\s+\S"
)

_SHOT_HEADER_RE = re.compile(r"^[ \t]*SHOT LIST\b.*$", re.MULTILINE)

_LABELED_LINE_RE = re.compile(
    r"^(?P<prefix>\s*(?:[-*•]\s*)?)(?P<label>[A-Za-z][A-Za-z /&]*?)\s*:\s*(?P<value>.*?)\s*$"
)

_SENTINEL_STRIP = " \t\"'`()[]{}.,;"


def shot_list_header(shot_count: int, duration_sec: float) -> str:
    """Canonical shot list header, e.g. 'SHOT LIST (4 shots / 10.00s)'."""
    return f"SHOT LIST ({shot_count} shots / {duration_sec:.2f}s)"


def check_placeholders(text: str) -> str | None:
    """Flag unreplaced template placeholders (square or curly brackets)."""
    if _PLACEHOLDER_RE.search(text):
        return REASON_PLACEHOLDERS
    return None


def check_sections(text: str) -> str | None:
    """Flag a candidate that is missing any required section header."""
    if all(section in text for section in REQUIRED_SECTIONS):
        return None
    return REASON_MISSING_SECTIONS


def count_shot_lines(text: str) -> int:
    """Count lines shaped like 'start–end — description'."""
    return sum(1 for line in text.splitlines() if _SHOT_LINE_RE.match(line))


def check_shot_count(text: str, shot_count: int) -> str | None:
    """Flag a shot list whose line count differs from the requested count."""
    found = count_shot_lines(text)
    if found == shot_count:
        return None
    return f"{REASON_SHOT_COUNT}:{found}"


def strip_leaked_headings(text: str) -> str:
    """Drop lines that begin with a known prompt heading."""
    kept = [
        line
        for line in text.splitlines()
        if not line.strip().startswith(LEAKED_HEADING_PREFIXES)
    ]
    return "\n".join(kept).strip()


def rewrite_shot_header(text: str, shot_count: int, duration_sec: float) -> str:
    """Replace every SHOT LIST header line with the canonical one."""
    return _SHOT_HEADER_RE.sub(shot_list_header(shot_count, duration_sec), text)


def repair_template(text: str, shot_count: int, duration_sec: float) -> str:
    """Apply the deterministic, idempotent repairs."""
    return rewrite_shot_header(strip_leaked_headings(text), shot_count, duration_sec)


def validate_template(text: str, shot_count: int, duration_sec: float) -> ValidationResult:
    """Repair a candidate, then run every structural predicate over the result.

    Args:
        text: Raw oracle text.
        shot_count: Authoritative number of shots N, floored at 1.
        duration_sec: Total duration used in the shot list header.

    Returns:
        ValidationResult with all reason codes and the repaired text.
    """
    shot_count = max(shot_count, 1)
    repaired = repair_template(text, shot_count, duration_sec)
    reasons = {
        reason
        for reason in (
            check_placeholders(repaired),
            check_sections(repaired),
            check_shot_count(repaired, shot_count),
        )
        if reason is not None
    }
    return ValidationResult(
        compliant=not reasons,
        reasons=frozenset(reasons),
        repaired_text=repaired,
    )


def is_sentinel(value: str) -> bool:
    """True when a value is a bare sentinel such as 'auto' or '(미정)'."""
    return value.strip(_SENTINEL_STRIP).lower() in SENTINEL_VALUES


def substitute_sentinels(text: str, style: StoryboardStyle, language: str) -> str:
    """Replace sentinel values on recognized 'label: value' lines.

    Lines with an unrecognized label, or whose value is not a sentinel, are
    left untouched.
    """
    lines = []
    for line in text.splitlines():
        match = _LABELED_LINE_RE.match(line)
        if match and is_sentinel(match.group("value")):
            replacement = derive_auto_value(match.group("label"), style, language)
            if replacement is not None:
                line = f"{match.group('prefix')}{match.group('label')}: {replacement}"
        lines.append(line)
    return "\n".join(lines)

