"""Domain models shared by the ingestion and analysis pipeline."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_VIDEO_TITLE = "Untitled Video"


class VideoPlatform(str, Enum):
    YOUTUBE = "youtube"
    LOOM = "loom"


class ItemProcessingStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class ParseMode(str, Enum):
    """How the final analysis fields were recovered from model output."""

    STRUCTURED_JSON = "structured_json"
    HEURISTIC_EXTRACTION = "heuristic_extraction"
    PARSE_FAILURE = "parse_failure"


class VideoMetadata(BaseModel):
    """Canonical metadata for a supported video URL."""

    url: str
    thumbnail_url: str | None = None
    title: str = DEFAULT_VIDEO_TITLE
    platform: VideoPlatform
    description: str | None = None


class ProcessingSummary(BaseModel):
    """Per-item URL counts written when an inbound item is marked processed."""

    total: int = 0
    processed: int = 0
    failed: int = 0


class AnalysisFields(BaseModel):
    """The five fields requested from the analysis model."""

    model_config = ConfigDict(populate_by_name=True)

    implementation_overview: str = Field(default="", alias="implementationOverview")
    technical_details: str = Field(default="", alias="technicalDetails")
    tech_stack: list[str] = Field(default_factory=list, alias="techStack")
    architecture_patterns: list[str] = Field(default_factory=list, alias="architecturePatterns")
    best_practices: list[str] = Field(default_factory=list, alias="bestPractices")


class AnalysisOutcome(BaseModel):
    """Tagged result of parsing raw model text."""

    mode: ParseMode
    fields: AnalysisFields
    confidence: float = Field(ge=0.0, le=1.0)


class AnalysisProcessingMetadata(BaseModel):
    """Internal bookkeeping stored alongside an analysis state."""

    start_time: datetime
    attempts: int = 1
    last_error: str | None = None
    raw_model_response: str | None = None
    confidence: float | None = None
    processing_duration_ms: int | None = None
    parse_mode: ParseMode | None = None


class AnalysisState(BaseModel):
    """Full replacement state for a video analysis row.

    ``is_processing`` True means initializing; otherwise ``error`` decides
    between completed (None) and failed.
    """

    video_id: int
    fields: AnalysisFields = Field(default_factory=AnalysisFields)
    is_processing: bool
    error: str | None = None
    last_updated: datetime
    processing_metadata: AnalysisProcessingMetadata

    @property
    def is_failed(self) -> bool:
        return not self.is_processing and self.error is not None

    @property
    def is_completed(self) -> bool:
        return not self.is_processing and self.error is None

    def metadata_dict(self) -> dict[str, Any]:
        return self.processing_metadata.model_dump(mode="json", exclude_none=True)
