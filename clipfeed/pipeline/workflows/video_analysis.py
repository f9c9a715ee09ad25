"""Video analysis workflow: drive one analysis record to a terminal state."""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, TypeVar

from sqlalchemy.orm import Session

from clipfeed.core.logging import get_logger
from clipfeed.models.metadata import (
    AnalysisFields,
    AnalysisOutcome,
    AnalysisProcessingMetadata,
    AnalysisState,
)
from clipfeed.models.schema import Video, VideoAnalysis
from clipfeed.services.analysis_parsing import parse_analysis_response
from clipfeed.services.video_analyzer import build_analysis_prompt
from clipfeed.services.video_content import VideoContent
from clipfeed.utils.error_logger import increment_pipeline_metric, log_processing_error

logger = get_logger(__name__)

T = TypeVar("T")


class AnalysisTimeoutError(TimeoutError):
    """Fetching and analyzing the video did not finish before the deadline."""


class ContentFetcher(Protocol):
    def fetch(self, url: str) -> VideoContent:
        """Return the bytes of the video at ``url``."""


class Analyzer(Protocol):
    def analyze(self, content: VideoContent, prompt: str) -> str:
        """Return raw model text for ``content``."""


@dataclass(frozen=True)
class VideoSnapshot:
    id: int
    source_url: str
    title: str
    description: str | None


class VideoAnalysisWorkflow:
    """Initializing -> Completed | Failed for one video.

    Every path ends in a terminal state; an interrupted process gets a
    best-effort Failed write before the interrupt propagates.
    """

    def __init__(
        self,
        *,
        db_factory: Callable[[], AbstractContextManager[Session]],
        content_fetcher: ContentFetcher,
        analyzer: Analyzer,
        timeout_seconds: float,
    ) -> None:
        self._db_factory = db_factory
        self._content_fetcher = content_fetcher
        self._analyzer = analyzer
        self._timeout_seconds = timeout_seconds

    def run(self, video_id: int) -> AnalysisState | None:
        """Analyze ``video_id``; returns the terminal state, or None if the video is missing."""
        video, previous_attempts = self._load(video_id)
        if video is None:
            logger.error(
                "Video %s not found; skipping analysis",
                video_id,
                extra={
                    "component": "video_analysis",
                    "operation": "load_video",
                    "item_id": video_id,
                },
            )
            return None

        started = datetime.now(UTC)
        started_monotonic = time.monotonic()
        metadata = AnalysisProcessingMetadata(start_time=started, attempts=previous_attempts + 1)
        self._write_state(
            AnalysisState(
                video_id=video_id,
                is_processing=True,
                last_updated=started,
                processing_metadata=metadata,
            )
        )

        try:
            raw_text = self._run_with_deadline(lambda: self._fetch_and_analyze(video))
            # PostgreSQL text columns reject NUL bytes
            raw_text = (raw_text or "").replace("\x00", "")
            outcome = parse_analysis_response(raw_text)
        except Exception as exc:  # noqa: BLE001
            log_processing_error(
                "video_analysis",
                video_id,
                exc,
                operation="analyze_video",
                context={"source_url": video.source_url},
            )
            increment_pipeline_metric("video_analysis", "failed")
            state = self._failed_state(video_id, metadata, started_monotonic, exc)
        except BaseException as exc:
            logger.warning("Analysis of video %s interrupted; recording failure", video_id)
            self._write_failed_best_effort(
                self._failed_state(video_id, metadata, started_monotonic, exc)
            )
            raise
        else:
            increment_pipeline_metric("video_analysis", outcome.mode.value)
            state = self._completed_state(video_id, metadata, started_monotonic, raw_text, outcome)

        try:
            self._write_state(state)
        except Exception as exc:  # noqa: BLE001
            if state.is_failed:
                raise
            log_processing_error(
                "video_analysis",
                video_id,
                exc,
                operation="persist_result",
                context={"source_url": video.source_url},
            )
            increment_pipeline_metric("video_analysis", "failed")
            state = self._failed_state(video_id, metadata, started_monotonic, exc)
            self._write_state(state)

        logger.info(
            "Video %s analysis %s",
            video_id,
            "failed" if state.is_failed else "completed",
            extra={
                "component": "video_analysis",
                "operation": "finish",
                "item_id": video_id,
                "context_data": state.metadata_dict(),
            },
        )
        return state

    def _load(self, video_id: int) -> tuple[VideoSnapshot | None, int]:
        with self._db_factory() as db:
            video = db.query(Video).filter(Video.id == video_id).first()
            if video is None:
                return None, 0
            snapshot = VideoSnapshot(
                id=video.id,
                source_url=video.source_url,
                title=video.title,
                description=video.description,
            )
            existing = db.get(VideoAnalysis, video_id)
            attempts = 0
            if existing is not None and existing.processing_metadata:
                attempts = int(existing.processing_metadata.get("attempts") or 0)
            return snapshot, attempts

    def _fetch_and_analyze(self, video: VideoSnapshot) -> str:
        content = self._content_fetcher.fetch(video.source_url)
        prompt = build_analysis_prompt(video.title, video.description)
        return self._analyzer.analyze(content, prompt)

    def _run_with_deadline(self, func: Callable[[], T]) -> T:
        """Run ``func`` on a daemon thread and wait at most ``timeout_seconds``.

        A call that outlives the deadline cannot be killed. It keeps running in
        the background but never blocks interpreter exit.
        """
        outcome: queue.Queue[tuple[bool, object]] = queue.Queue(maxsize=1)

        def target() -> None:
            try:
                outcome.put((True, func()))
            except BaseException as exc:  # noqa: BLE001
                outcome.put((False, exc))

        worker = threading.Thread(target=target, name="video-analysis", daemon=True)
        worker.start()
        try:
            succeeded, value = outcome.get(timeout=self._timeout_seconds)
        except queue.Empty as exc:
            raise AnalysisTimeoutError(
                f"Analysis exceeded {self._timeout_seconds:g}s deadline"
            ) from exc
        if not succeeded:
            raise value
        return value

    @staticmethod
    def _elapsed_ms(started_monotonic: float) -> int:
        return int((time.monotonic() - started_monotonic) * 1000)

    def _completed_state(
        self,
        video_id: int,
        metadata: AnalysisProcessingMetadata,
        started_monotonic: float,
        raw_text: str,
        outcome: AnalysisOutcome,
    ) -> AnalysisState:
        return AnalysisState(
            video_id=video_id,
            fields=outcome.fields,
            is_processing=False,
            error=None,
            last_updated=datetime.now(UTC),
            processing_metadata=metadata.model_copy(
                update={
                    "raw_model_response": raw_text,
                    "confidence": outcome.confidence,
                    "parse_mode": outcome.mode,
                    "processing_duration_ms": self._elapsed_ms(started_monotonic),
                }
            ),
        )

    def _failed_state(
        self,
        video_id: int,
        metadata: AnalysisProcessingMetadata,
        started_monotonic: float,
        error: BaseException,
    ) -> AnalysisState:
        message = str(error) or type(error).__name__
        return AnalysisState(
            video_id=video_id,
            fields=AnalysisFields(),
            is_processing=False,
            error=message,
            last_updated=datetime.now(UTC),
            processing_metadata=metadata.model_copy(
                update={
                    "last_error": message,
                    "processing_duration_ms": self._elapsed_ms(started_monotonic),
                }
            ),
        )

    def _write_state(self, state: AnalysisState) -> None:
        with self._db_factory() as db:
            record = db.get(VideoAnalysis, state.video_id)
            if record is None:
                record = VideoAnalysis(video_id=state.video_id)
                db.add(record)
            record.apply_state(state)
            db.commit()

    def _write_failed_best_effort(self, state: AnalysisState) -> None:
        try:
            self._write_state(state)
        except Exception:  # noqa: BLE001
            logger.exception("Could not record failure for video %s", state.video_id)
