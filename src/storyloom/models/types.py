"""Pydantic models for the storyloom HTTP contract.

Bounds here are the inbound contract: anything outside them is rejected with
a 400 before any oracle call is attempted.
"""

from typing import Literal

from pydantic import BaseModel, Field

GenerationMode = Literal["auto", "none"]
OutputMode = Literal["json", "natural"]
Language = Literal["ko", "en"]
TemplateMode = Literal["detailed", "basic"]


class AudioPreferences(BaseModel):
    """Per-channel audio generation switches."""

    bgm: GenerationMode = "auto"
    sfx: GenerationMode = "auto"
    voice: GenerationMode = "auto"


class StoryboardRequest(BaseModel):
    """Inbound storyboard generation request."""

    duration_sec: int = Field(ge=5, le=120)
    scene_count: int = Field(ge=1, le=12)
    style: str | None = None
    idea: str = Field(min_length=5, max_length=500)
    dialogue_mode: GenerationMode = "none"
    audio_preferences: AudioPreferences = Field(default_factory=AudioPreferences)
    output_mode: OutputMode = "json"
    language: Language = "ko"
    max_characters: int = Field(default=500, ge=100, le=1500)
    template_mode: TemplateMode = "detailed"


class StoryboardScene(BaseModel):
    """One scene of a JSON storyboard."""

    id: str
    time: str
    visual: str
    dialogue: str
    sfx: list[str]
    transition: str


class StoryboardFormat(BaseModel):
    """Fixed render format block."""

    aspect: str = "16:9"
    fps: int = 24
    resolution: str = "1920x1080"
    grading: str


class StoryboardAudio(BaseModel):
    """Audio direction resolved from the style and audio preferences."""

    bgm: str | None
    sfx: list[str]
    vo_tone: str | None


class Storyboard(BaseModel):
    """Complete JSON storyboard."""

    title: str
    duration_sec: int
    format: StoryboardFormat
    audio: StoryboardAudio
    scenes: list[StoryboardScene]


class StoryboardJsonResponse(BaseModel):
    """Success payload for output_mode='json'."""

    ok: Literal[True] = True
    format: Literal["json"] = "json"
    storyboard: Storyboard
    audio: StoryboardAudio
    attempts: int


class StoryboardTextResponse(BaseModel):
    """Success payload for output_mode='natural'."""

    ok: Literal[True] = True
    format: Literal["natural"] = "natural"
    storyboard_text: str
    audio: StoryboardAudio
    compliant: bool
    best_effort: bool
    regenerated: bool
    reasons: list[str]


class ErrorResponse(BaseModel):
    """Failure envelope shared by all endpoints."""

    ok: Literal[False] = False
    reason: str
    issues: list[dict] | None = None


class ViewSpecIn(BaseModel):
    """One view of a batch request."""

    id: str = Field(min_length=1, max_length=64)
    label: str = Field(min_length=1, max_length=120)
    instruction: str = Field(min_length=1, max_length=1000)
    requires_reference: bool = False


class BatchRequest(BaseModel):
    """Inbound batch generation request."""

    storyboard: StoryboardRequest
    views: list[ViewSpecIn] = Field(min_length=1, max_length=30)
    mode: Literal["sequential", "parallel"] = "sequential"
    inter_request_delay: float = Field(default=0.5, ge=0.0, le=10.0)
    reference: str | None = None


class BatchItemDetail(BaseModel):
    """Per-item report of a batch response."""

    index: int
    view_id: str
    label: str
    status: Literal["pending", "running", "succeeded", "failed", "canceled"]
    outcome: Literal["success", "failed", "network", "error", "canceled"] | None
    reason: str | None
    record_id: str | None
    attempts: int | None
    payload: dict | None


class BatchResponse(BaseModel):
    """Batch result envelope."""

    ok: bool
    run_id: str
    succeeded: int
    failed: int
    canceled: int
    reference_record_id: str | None
    items: list[BatchItemDetail]
    reason: str | None = None


class RecordDetail(BaseModel):
    """Stored generated record."""

    record_id: str
    run_id: str
    view_id: str
    view_label: str
    sequence_index: int
    attempts: int
    role: Literal["history", "reference"]
    promoted_to_reference: bool
    source_record_id: str | None = None
    payload: dict
