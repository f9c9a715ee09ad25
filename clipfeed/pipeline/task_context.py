"""Shared dependencies for task handlers."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from clipfeed.core.db import get_db
from clipfeed.core.settings import Settings
from clipfeed.services.queue import QueueService

if TYPE_CHECKING:
    from clipfeed.services.video_analyzer import VideoAnalyzer
    from clipfeed.services.video_content import VideoContentFetcher
    from clipfeed.services.video_metadata import VideoMetadataExtractor


@dataclass(frozen=True)
class TaskContext:
    """Capabilities a handler may use while processing one task.

    Handlers get the store only through ``db_factory`` and never reach for
    process-wide sessions.
    """

    queue_service: QueueService
    settings: Settings
    worker_id: str
    metadata_extractor: VideoMetadataExtractor | None = None
    content_fetcher: VideoContentFetcher | None = None
    video_analyzer: VideoAnalyzer | None = None
    db_factory: Callable[[], AbstractContextManager[Session]] = get_db
