"""Natural-language template generation with validation and one regeneration.

Detailed mode validates the repaired candidate and, when it is still
non-compliant, asks the oracle exactly once for a stricter rewrite. Whatever
comes back is repaired, re-validated and returned, compliant or not. Sentinel
substitution runs once, on the final candidate only.

Basic mode is a single call with substitution and no structural checks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from storyloom.core.errors import TransportError
from storyloom.generation.compliance import substitute_sentinels, validate_template
from storyloom.generation.prompts import compliance_reminder
from storyloom.generation.styles import StoryboardStyle
from storyloom.models.domain import ChatMessage, GenerationRequest, OracleResponse
from storyloom.providers.base import OracleBase

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateResult:
    """Final template text and how it was obtained.

    Attributes:
        text: Repaired, sentinel-free text.
        compliant: True when every structural predicate passed.
        reasons: Reason codes of the final candidate (empty when compliant).
        regenerated: True when the single regeneration produced the final text.
        attempts: Oracle calls made (1 or 2).
    """

    text: str
    compliant: bool
    reasons: frozenset[str] = field(default_factory=frozenset)
    regenerated: bool = False
    attempts: int = 1

    @property
    def best_effort(self) -> bool:
        return not self.compliant


def _raise_for_failure(response: OracleResponse) -> str:
    text = response.text.strip() if response.ok else ""
    if not text:
        raise TransportError(
            response.cause or "empty-body",
            status_code=response.status_code,
            detail=response.detail,
        )
    return text


async def generate_template(
    oracle: OracleBase,
    request: GenerationRequest,
    shot_count: int,
    duration_sec: float,
    style: StoryboardStyle,
    language: str,
) -> TemplateResult:
    """Generate a detailed template and enforce its structure.

    Args:
        oracle: Oracle adapter.
        request: Free-text request carrying the detailed prompt.
        shot_count: Authoritative number of shots N. Values below 1 are treated as 1.
        duration_sec: Total duration for the shot list header.
        style: Style used to resolve sentinel values.
        language: Target language for substituted values.

    Returns:
        TemplateResult; best_effort is set when the final candidate fails validation.

    Raises:
        TransportError: If the first call fails. A failed regeneration is
            absorbed and the repaired first candidate is returned.
    """
    shot_count = max(shot_count, 1)
    first_text = _raise_for_failure(await oracle.call(request))
    result = validate_template(first_text, shot_count, duration_sec)
    regenerated = False
    attempts = 1

    if not result.compliant:
        logger.info(f"Template non-compliant ({', '.join(sorted(result.reasons))}); regenerating once")
        retry_request = request.with_messages(
            ChatMessage(role="assistant", content=first_text),
            compliance_reminder(shot_count, duration_sec),
        )
        attempts += 1
        retry = await oracle.call(retry_request)
        retry_text = retry.text.strip() if retry.ok else ""
        if retry_text:
            result = validate_template(retry_text, shot_count, duration_sec)
            regenerated = True
        else:
            logger.warning(
                f"Template regeneration failed ({retry.cause or 'empty-body'}); keeping first candidate"
            )

    if not result.compliant:
        logger.warning(
            f"Returning best-effort template with reasons: {', '.join(sorted(result.reasons))}"
        )

    return TemplateResult(
        text=substitute_sentinels(result.repaired_text, style, language),
        compliant=result.compliant,
        reasons=result.reasons,
        regenerated=regenerated,
        attempts=attempts,
    )


async def generate_basic_text(
    oracle: OracleBase,
    request: GenerationRequest,
    style: StoryboardStyle,
    language: str,
) -> TemplateResult:
    """Single-call natural storyboard without structural checks.

    Raises:
        TransportError: If the call fails or returns no text.
    """
    text = _raise_for_failure(await oracle.call(request))
    return TemplateResult(text=substitute_sentinels(text, style, language), compliant=True)
