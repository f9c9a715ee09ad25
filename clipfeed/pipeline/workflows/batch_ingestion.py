"""Batch ingestion: turn inbound posts into video records.

Each run reads the unprocessed items of a batch, extracts metadata for their
links outside any transaction, then stages every derived write (users,
videos, analysis triggers, item status) into a single commit. Items are
guarded by a conditional ``is_processed = false`` update, so a redelivered
batch never writes twice.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clipfeed.core.logging import get_logger
from clipfeed.models.metadata import ItemProcessingStatus, ProcessingSummary, VideoMetadata
from clipfeed.models.schema import InboundItem, Video
from clipfeed.services.queue import QueueService, TaskType
from clipfeed.services.user_resolution import UserResolver
from clipfeed.utils.error_logger import increment_pipeline_metric, log_error
from clipfeed.utils.url_utils import filter_http_urls

logger = get_logger(__name__)


class BatchCommitError(RuntimeError):
    """The staged write group could not be committed; the message must be redelivered."""


class StaleItemError(BatchCommitError):
    """An item was marked processed by another delivery while this one was staging."""


class MetadataExtractor(Protocol):
    def extract(self, url: str) -> VideoMetadata | None:
        """Return metadata for ``url`` or None."""


@dataclass(frozen=True)
class PendingItem:
    """Plain snapshot of an unprocessed inbound item."""

    id: int
    author_username: str
    urls: list[str]


@dataclass
class ItemExtraction:
    item: PendingItem
    metadata: list[VideoMetadata] = field(default_factory=list)
    failed: int = 0

    @property
    def summary(self) -> ProcessingSummary:
        return ProcessingSummary(
            total=len(self.item.urls), processed=len(self.metadata), failed=self.failed
        )


@dataclass
class BatchIngestionResult:
    batch_id: str | None
    total_items: int = 0
    pending_items: int = 0
    processed_items: int = 0
    videos_created: list[int] = field(default_factory=list)
    failed_items: int = 0

    @property
    def was_noop(self) -> bool:
        return self.pending_items == 0


class BatchIngestionWorkflow:
    """Coordinates extraction and the atomic write group for inbound items."""

    def __init__(
        self,
        *,
        db_factory: Callable[[], AbstractContextManager[Session]],
        metadata_extractor: MetadataExtractor,
        queue_service: QueueService,
    ) -> None:
        self._db_factory = db_factory
        self._extractor = metadata_extractor
        self._queue_service = queue_service

    def run(self, batch_id: str) -> BatchIngestionResult:
        """Process every unprocessed item of ``batch_id``.

        Raises:
            BatchCommitError: when the write group cannot be committed.
        """
        result = BatchIngestionResult(batch_id=batch_id)

        with self._db_factory() as db:
            result.total_items = (
                db.query(InboundItem.id).filter(InboundItem.batch_id == batch_id).count()
            )
            pending = [
                self._snapshot(item)
                for item in db.query(InboundItem)
                .filter(InboundItem.batch_id == batch_id, InboundItem.is_processed.is_(False))
                .all()
            ]
        result.pending_items = len(pending)

        logger.info(
            "Batch %s: %d items, %d pending",
            batch_id,
            result.total_items,
            result.pending_items,
            extra={
                "component": "batch_ingestion",
                "operation": "load_batch",
                "item_id": batch_id,
                "context_data": {"total": result.total_items, "pending": result.pending_items},
            },
        )
        if not pending:
            # Already handled, or items not visible yet; neither is an error
            return result

        extractions = [self._extract(item) for item in pending]

        with self._db_factory() as db:
            try:
                for extraction in extractions:
                    result.videos_created.extend(self._stage_item(db, extraction))
                db.commit()
            except StaleItemError:
                db.rollback()
                raise
            except SQLAlchemyError as exc:
                db.rollback()
                log_error(
                    "batch_ingestion",
                    exc,
                    operation="commit",
                    item_id=batch_id,
                    context={"pending_items": result.pending_items},
                )
                raise BatchCommitError(f"Commit failed for batch {batch_id}: {exc}") from exc

        result.processed_items = len(extractions)
        increment_pipeline_metric("batch_ingestion", "items_processed", len(extractions))
        logger.info(
            "Batch %s committed: %d items, %d videos",
            batch_id,
            result.processed_items,
            len(result.videos_created),
        )
        return result

    def run_item(self, item_id: int) -> BatchIngestionResult:
        """Process a single inbound item (item-created trigger).

        Unlike batches, a failure here marks the item processed with an error
        so the trigger is not retried forever.
        """
        result = BatchIngestionResult(batch_id=None, total_items=1)

        with self._db_factory() as db:
            item = (
                db.query(InboundItem)
                .filter(InboundItem.id == item_id, InboundItem.is_processed.is_(False))
                .first()
            )
            pending = self._snapshot(item) if item else None

        if pending is None:
            logger.info("Item %s missing or already processed; nothing to do", item_id)
            return result
        result.pending_items = 1

        try:
            extraction = self._extract(pending)
            with self._db_factory() as db:
                video_ids = self._stage_item(db, extraction)
                db.commit()
        except StaleItemError:
            logger.info("Item %s was processed by another delivery", item_id)
            return result
        except Exception as exc:  # noqa: BLE001
            log_error("batch_ingestion", exc, operation="process_item", item_id=item_id)
            self._mark_item_failed(item_id, pending, exc)
            result.failed_items = 1
            return result

        result.processed_items = 1
        result.videos_created.extend(video_ids)
        return result

    @staticmethod
    def _snapshot(item: InboundItem) -> PendingItem:
        return PendingItem(
            id=item.id,
            author_username=item.author_username,
            urls=filter_http_urls(item.raw_urls),
        )

    def _extract(self, item: PendingItem) -> ItemExtraction:
        extraction = ItemExtraction(item=item)
        for url in item.urls:
            try:
                metadata = self._extractor.extract(url)
            except Exception as exc:  # noqa: BLE001
                # One bad link costs its own video only, never its siblings
                log_error(
                    "batch_ingestion",
                    exc,
                    operation="extract_metadata",
                    item_id=item.id,
                    context={"url": url},
                )
                metadata = None
            if metadata is None:
                extraction.failed += 1
            else:
                extraction.metadata.append(metadata)
        return extraction

    def _stage_item(self, db: Session, extraction: ItemExtraction) -> list[int]:
        """Stage users, videos, analysis triggers and the status update for one item."""
        item = extraction.item
        user_id = UserResolver(db).find_or_create(item.author_username)

        video_ids: list[int] = []
        for metadata in extraction.metadata:
            video = Video(
                source_url=metadata.url,
                thumbnail_url=metadata.thumbnail_url,
                title=metadata.title,
                description=metadata.description,
                platform=metadata.platform.value,
                user_id=user_id,
                inbound_item_id=item.id,
                liked_by=[],
                saved_by=[],
                comment_count=0,
            )
            db.add(video)
            db.flush()
            self._queue_service.stage(db, TaskType.ANALYZE_VIDEO, {"video_id": video.id})
            video_ids.append(video.id)

        summary = extraction.summary
        updated = (
            db.query(InboundItem)
            .filter(InboundItem.id == item.id, InboundItem.is_processed.is_(False))
            .update(
                {
                    InboundItem.is_processed: True,
                    InboundItem.processing_status: ItemProcessingStatus.COMPLETED.value,
                    InboundItem.processing_summary: summary.model_dump(),
                    InboundItem.processed_at: datetime.now(UTC),
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            raise StaleItemError(f"Item {item.id} was already processed")

        logger.info(
            "Staged item %s: %d/%d URLs extracted",
            item.id,
            summary.processed,
            summary.total,
            extra={
                "component": "batch_ingestion",
                "operation": "stage_item",
                "item_id": item.id,
                "context_data": summary.model_dump(),
            },
        )
        return video_ids

    def _mark_item_failed(self, item_id: int, item: PendingItem, error: Exception) -> None:
        summary = ProcessingSummary(total=len(item.urls), processed=0, failed=len(item.urls))
        with self._db_factory() as db:
            db.query(InboundItem).filter(
                InboundItem.id == item_id, InboundItem.is_processed.is_(False)
            ).update(
                {
                    InboundItem.is_processed: True,
                    InboundItem.processing_status: ItemProcessingStatus.FAILED.value,
                    InboundItem.processing_summary: summary.model_dump(),
                    InboundItem.processing_error: str(error) or type(error).__name__,
                    InboundItem.processed_at: datetime.now(UTC),
                },
                synchronize_session=False,
            )
            db.commit()
