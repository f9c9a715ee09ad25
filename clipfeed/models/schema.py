from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from clipfeed.core.db import Base
from clipfeed.models.metadata import (
    AnalysisFields,
    AnalysisProcessingMetadata,
    AnalysisState,
    ItemProcessingStatus,
)


def utcnow() -> datetime:
    return datetime.now(UTC)


class User(Base):
    """Internal user record keyed by the external author's username."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(255), unique=True, nullable=False, index=True)
    bio = Column(Text, default="", nullable=False)
    photo_url = Column(String(2048), default="", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


class InboundItem(Base):
    """A social post delivered by the external ingestion source."""

    __tablename__ = "inbound_items"

    id = Column(Integer, primary_key=True)
    batch_id = Column(String(128), nullable=False, index=True)
    author_username = Column(String(255), nullable=False)
    author_external_id = Column(String(255), nullable=True)
    raw_urls = Column(JSON, default=list, nullable=False)

    is_processed = Column(Boolean, default=False, nullable=False, index=True)
    processing_status = Column(
        String(20), default=ItemProcessingStatus.PENDING.value, nullable=False
    )
    processing_summary = Column(JSON, nullable=True)
    processing_error = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (Index("idx_inbound_batch_processed", "batch_id", "is_processed"),)


class Video(Base):
    """Enrichment record created for every URL with extractable metadata."""

    __tablename__ = "videos"

    id = Column(Integer, primary_key=True)
    source_url = Column(String(2048), nullable=False)
    thumbnail_url = Column(String(2048), nullable=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    platform = Column(String(50), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    inbound_item_id = Column(Integer, ForeignKey("inbound_items.id"), nullable=True, index=True)

    # Interaction counters are owned by features outside the pipeline
    liked_by = Column(JSON, default=list, nullable=False)
    saved_by = Column(JSON, default=list, nullable=False)
    comment_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class VideoAnalysis(Base):
    """Analysis state for a video. Rows are replaced wholesale on every transition."""

    __tablename__ = "video_analyses"

    video_id = Column(Integer, ForeignKey("videos.id"), primary_key=True)
    implementation_overview = Column(Text, default="", nullable=False)
    technical_details = Column(Text, default="", nullable=False)
    tech_stack = Column(JSON, default=list, nullable=False)
    architecture_patterns = Column(JSON, default=list, nullable=False)
    best_practices = Column(JSON, default=list, nullable=False)
    is_processing = Column(Boolean, default=True, nullable=False, index=True)
    error = Column(Text, nullable=True)
    last_updated = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    processing_metadata = Column(JSON, default=dict, nullable=False)

    def apply_state(self, state: AnalysisState) -> None:
        """Overwrite every column from ``state``."""
        self.implementation_overview = state.fields.implementation_overview
        self.technical_details = state.fields.technical_details
        self.tech_stack = list(state.fields.tech_stack)
        self.architecture_patterns = list(state.fields.architecture_patterns)
        self.best_practices = list(state.fields.best_practices)
        self.is_processing = state.is_processing
        self.error = state.error
        self.last_updated = state.last_updated
        self.processing_metadata = state.metadata_dict()

    def to_state(self) -> AnalysisState:
        return AnalysisState(
            video_id=self.video_id,
            fields=AnalysisFields(
                implementation_overview=self.implementation_overview or "",
                technical_details=self.technical_details or "",
                tech_stack=list(self.tech_stack or []),
                architecture_patterns=list(self.architecture_patterns or []),
                best_practices=list(self.best_practices or []),
            ),
            is_processing=self.is_processing,
            error=self.error,
            last_updated=self.last_updated,
            processing_metadata=AnalysisProcessingMetadata.model_validate(
                self.processing_metadata or {"start_time": self.last_updated}
            ),
        )


class Comment(Base):
    """User comment on a video; bot replies are stored here too."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True)
    video_id = Column(Integer, ForeignKey("videos.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    text = Column(Text, nullable=False)
    is_bot_reply = Column(Boolean, default=False, nullable=False)
    reply_to_id = Column(Integer, ForeignKey("comments.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ProcessingTask(Base):
    """Database-backed message queue for pipeline triggers."""

    __tablename__ = "processing_tasks"

    id = Column(Integer, primary_key=True)
    task_type = Column(String(50), nullable=False, index=True)
    payload = Column(JSON, default=dict)
    status = Column(String(20), default="pending", index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, default=0)

    __table_args__ = (Index("idx_task_status_created", "status", "created_at"),)
