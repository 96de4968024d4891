"""Domain models for storyloom.

Plain dataclasses shared by the oracle client, the unit generators and the
batch orchestrator. Wire-level (HTTP) contracts live in models.types.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Literal

# ============================================================================
# Oracle Domain
# ============================================================================

Role = Literal["system", "user", "assistant"]
FailureCause = Literal["transport", "non-2xx", "empty-body"]


@dataclass(frozen=True)
class ChatMessage:
    """One role-tagged turn of a conversation with the oracle."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class OutputContract:
    """Requested output shape: free text or N structured scene items.

    Attributes:
        kind: 'free_text' or 'structured_items'.
        item_count: Exact number of items requested (structured only).
        sfx_min_items: Minimum sfx entries per item (0 when sfx is disabled).
    """

    kind: Literal["free_text", "structured_items"]
    item_count: int = 0
    sfx_min_items: int = 1

    @classmethod
    def free_text(cls) -> OutputContract:
        return cls(kind="free_text")

    @classmethod
    def structured_items(cls, item_count: int, sfx_min_items: int = 1) -> OutputContract:
        return cls(kind="structured_items", item_count=item_count, sfx_min_items=sfx_min_items)

    def response_format(self) -> dict[str, Any] | None:
        """Render the contract as an OpenAI-style response_format payload.

        Returns:
            JSON-schema response format for structured items, None for free text.
        """
        if self.kind == "free_text":
            return None
        return {
            "type": "json_schema",
            "json_schema": {
                "name": "storyboard_scenes",
                "strict": True,
                "schema": {
                    "type": "object",
                    "properties": {
                        "scenes": {
                            "type": "array",
                            "minItems": self.item_count,
                            "maxItems": self.item_count,
                            "items": {
                                "type": "object",
                                "additionalProperties": False,
                                "properties": {
                                    "visual": {"type": "string"},
                                    "dialogue": {"type": "string"},
                                    "sfx": {
                                        "type": "array",
                                        "minItems": self.sfx_min_items,
                                        "items": {"type": "string"},
                                    },
                                    "transition": {"type": "string"},
                                },
                                "required": ["visual", "dialogue", "sfx", "transition"],
                            },
                        }
                    },
                    "required": ["scenes"],
                    "additionalProperties": False,
                },
            },
        }


@dataclass(frozen=True)
class GenerationRequest:
    """Immutable request to the oracle.

    Attributes:
        messages: Ordered conversation turns.
        contract: Optional output-shape contract.
        unit_count: Target item count N (meaningful for structured contracts).
    """

    messages: tuple[ChatMessage, ...]
    contract: OutputContract | None = None
    unit_count: int = 1

    def with_messages(self, *extra: ChatMessage) -> GenerationRequest:
        """Return a copy with extra turns appended; self is left untouched."""
        return replace(self, messages=self.messages + tuple(extra))


@dataclass(frozen=True)
class OracleResponse:
    """Raw oracle answer: text on success, a classified cause on failure."""

    text: str
    ok: bool
    cause: FailureCause | None = None
    status_code: int | None = None
    detail: str = ""

    @classmethod
    def success(cls, text: str) -> OracleResponse:
        return cls(text=text, ok=True)

    @classmethod
    def failure(
        cls, cause: FailureCause, status_code: int | None = None, detail: str = ""
    ) -> OracleResponse:
        return cls(text="", ok=False, cause=cause, status_code=status_code, detail=detail)


# ============================================================================
# Unit Domain
# ============================================================================


@dataclass
class Scene:
    """One structured storyboard item."""

    visual: str = ""
    dialogue: str = ""
    sfx: list[str] = field(default_factory=list)
    transition: str = ""

    def copy(self) -> Scene:
        return Scene(
            visual=self.visual,
            dialogue=self.dialogue,
            sfx=list(self.sfx),
            transition=self.transition,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "visual": self.visual,
            "dialogue": self.dialogue,
            "sfx": list(self.sfx),
            "transition": self.transition,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of structural validation over an already-repaired candidate.

    Attributes:
        compliant: True when no reason codes were produced.
        reasons: Violation codes (e.g. 'missing-sections', 'invalid-shot-count:2').
        repaired_text: The candidate text the reasons refer to.
    """

    compliant: bool
    reasons: frozenset[str]
    repaired_text: str


@dataclass(frozen=True)
class UnitOutput:
    """What a unit runner hands back to the orchestrator on success."""

    payload: dict[str, Any]
    attempts: int


# ============================================================================
# Batch Domain
# ============================================================================

ItemStatus = Literal["pending", "running", "succeeded", "failed", "canceled"]
Outcome = Literal["success", "failed", "network", "error", "canceled"]
BatchMode = Literal["sequential", "parallel"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"succeeded", "failed", "canceled"})


@dataclass(frozen=True)
class ViewSpec:
    """One unit of work in a batch."""

    id: str
    label: str
    instruction: str
    requires_reference: bool = False


@dataclass
class GeneratedRecord:
    """A successful unit output plus its provenance."""

    record_id: str
    run_id: str
    view: ViewSpec
    sequence_index: int
    attempts: int
    payload: dict[str, Any]
    promoted_to_reference: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class BatchItemResult:
    """Final state of one batch slot."""

    index: int
    view: ViewSpec
    status: ItemStatus = "pending"
    outcome: Outcome | None = None
    reason: str | None = None
    record: GeneratedRecord | None = None


@dataclass
class BatchResult:
    """Index-ordered aggregate of a finished batch."""

    run_id: str
    items: list[BatchItemResult]
    was_canceled: bool = False
    reference_record_id: str | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.status == "succeeded")

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if item.status == "failed")

    @property
    def canceled(self) -> int:
        return sum(1 for item in self.items if item.status == "canceled")

    @property
    def records(self) -> list[GeneratedRecord]:
        return [item.record for item in self.items if item.record is not None]
