"""Batch-ready task handler."""

from __future__ import annotations

from clipfeed.core.logging import get_logger
from clipfeed.pipeline.task_context import TaskContext
from clipfeed.pipeline.task_models import TaskEnvelope, TaskResult
from clipfeed.pipeline.workflows.batch_ingestion import BatchCommitError, BatchIngestionWorkflow
from clipfeed.services.queue import TaskType

logger = get_logger(__name__)


class ProcessBatchHandler:
    """Ingest every unprocessed item of a batch."""

    task_type = TaskType.PROCESS_BATCH

    def handle(self, task: TaskEnvelope, context: TaskContext) -> TaskResult:
        batch_id = task.payload.get("batch_id")
        if not batch_id:
            logger.error("No batch_id provided for process_batch task %s", task.id)
            return TaskResult.fail("No batch_id provided", retryable=False)
        if context.metadata_extractor is None:
            return TaskResult.fail("Metadata extractor not configured", retryable=False)

        workflow = BatchIngestionWorkflow(
            db_factory=context.db_factory,
            metadata_extractor=context.metadata_extractor,
            queue_service=context.queue_service,
        )
        try:
            result = workflow.run(str(batch_id))
        except BatchCommitError as exc:
            # The message is redelivered; items already committed are skipped then
            logger.warning("Batch %s not committed, will retry: %s", batch_id, exc)
            return TaskResult.fail(str(exc), retryable=True)

        logger.info(
            "Batch %s done: %d/%d items processed, %d videos",
            batch_id,
            result.processed_items,
            result.pending_items,
            len(result.videos_created),
            extra={
                "component": "process_batch",
                "operation": "handle",
                "item_id": task.id,
                "context_data": {
                    "batch_id": batch_id,
                    "timestamp": task.payload.get("timestamp"),
                    "noop": result.was_noop,
                },
            },
        )
        return TaskResult.ok()
