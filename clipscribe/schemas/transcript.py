from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class TranscriptSegment(BaseModel):
    start: float = Field(ge=0)
    duration: float = Field(ge=0)
    text: str

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("segment text must not be empty")
        return value


class TranscriptResult(BaseModel):
    """Transcript as returned to callers.

    Serialized with camelCase keys (``sourceId``, ``totalSegments``...) because
    browser clients already consume that shape.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str
    source_id: str
    video_url: str
    platform: str = "youtube"
    language: str = "en"
    is_auto_generated: bool = False
    duration_seconds: Optional[int] = None
    segments: List[TranscriptSegment]
    total_segments: int = 0

    @model_validator(mode="after")
    def _count_segments(self) -> "TranscriptResult":
        self.total_segments = len(self.segments)
        return self

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)


class CaptionTrack(BaseModel):
    url: str
    language_code: str = ""
    name: str = ""
    is_auto_generated: bool = False
    fmt: str = "vtt"


class AttemptOutcome(BaseModel):
    """Result of one strategy attempt; only lives inside a single request."""

    strategy: str
    success: bool
    data: Optional[TranscriptResult] = None
    error: Optional[str] = None
    pending: bool = False
    job_id: Optional[str] = None
    no_captions: bool = False

    @classmethod
    def succeeded(cls, strategy: str, data: TranscriptResult) -> "AttemptOutcome":
        return cls(strategy=strategy, success=True, data=data)

    @classmethod
    def failed(cls, strategy: str, error: str, *, no_captions: bool = False) -> "AttemptOutcome":
        return cls(strategy=strategy, success=False, error=error, no_captions=no_captions)

    @classmethod
    def deferred(cls, strategy: str, job_id: Optional[str], error: Optional[str] = None) -> "AttemptOutcome":
        return cls(strategy=strategy, success=False, pending=True, job_id=job_id, error=error)


class ChainResult(BaseModel):
    outcome: AttemptOutcome
    attempts: List[AttemptOutcome] = Field(default_factory=list)

    @property
    def source(self) -> str:
        return self.outcome.strategy


class VideoEntry(BaseModel):
    video_id: str = Field(serialization_alias="videoId")
    title: str = ""
    url: str
