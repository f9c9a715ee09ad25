"""Item-created task handler."""

from __future__ import annotations

from clipfeed.core.logging import get_logger
from clipfeed.pipeline.task_context import TaskContext
from clipfeed.pipeline.task_models import TaskEnvelope, TaskResult
from clipfeed.pipeline.workflows.batch_ingestion import BatchIngestionWorkflow
from clipfeed.services.queue import TaskType

logger = get_logger(__name__)


class ProcessItemHandler:
    task_type = TaskType.PROCESS_ITEM

    def handle(self, task: TaskEnvelope, context: TaskContext) -> TaskResult:
        item_id = task.payload_int("item_id")
        if item_id is None:
            logger.error("No item_id provided for process_item task %s", task.id)
            return TaskResult.fail("No item_id provided", retryable=False)
        if context.metadata_extractor is None:
            return TaskResult.fail("Metadata extractor not configured", retryable=False)

        workflow = BatchIngestionWorkflow(
            db_factory=context.db_factory,
            metadata_extractor=context.metadata_extractor,
            queue_service=context.queue_service,
        )
        result = workflow.run_item(item_id)
        if result.failed_items:
            # Failure is recorded on the item itself
            logger.warning("Item %s recorded as failed", item_id)
        return TaskResult.ok()
