"""Sequential task processor for robust, simple task processing."""

import signal
import sys
import time
from typing import Any

from clipfeed.core.logging import get_logger
from clipfeed.core.settings import Settings, get_settings
from clipfeed.pipeline.dispatcher import TaskDispatcher
from clipfeed.pipeline.handlers.analyze_video import AnalyzeVideoHandler
from clipfeed.pipeline.handlers.process_batch import ProcessBatchHandler
from clipfeed.pipeline.handlers.process_item import ProcessItemHandler
from clipfeed.pipeline.handlers.reply_comment import ReplyCommentHandler
from clipfeed.pipeline.task_context import TaskContext
from clipfeed.pipeline.task_models import TaskEnvelope, TaskResult
from clipfeed.services.queue import QueueService, get_queue_service
from clipfeed.services.video_analyzer import VideoAnalyzer
from clipfeed.services.video_content import VideoContentFetcher
from clipfeed.services.video_metadata import VideoMetadataExtractor
from clipfeed.utils.error_logger import log_processing_error

logger = get_logger(__name__)

WORKER_ID = "sequential-processor"


def build_dispatcher() -> TaskDispatcher:
    return TaskDispatcher(
        [
            ProcessItemHandler(),
            ProcessBatchHandler(),
            AnalyzeVideoHandler(),
            ReplyCommentHandler(),
        ]
    )


def build_task_context(
    settings: Settings, queue_service: QueueService, worker_id: str = WORKER_ID
) -> TaskContext:
    """Wire the production collaborators handlers receive."""
    return TaskContext(
        queue_service=queue_service,
        settings=settings,
        worker_id=worker_id,
        metadata_extractor=VideoMetadataExtractor(),
        content_fetcher=VideoContentFetcher(
            max_bytes=settings.analysis_max_video_bytes,
            user_agent=settings.http_user_agent,
        ),
        video_analyzer=VideoAnalyzer(settings.analysis_model),
    )


def retry_delay_seconds(retry_count: int) -> int:
    return min(60 * (2**retry_count), 3600)


class SequentialTaskProcessor:
    """Sequential task processor - processes tasks one at a time."""

    def __init__(
        self,
        queue_service: QueueService | None = None,
        dispatcher: TaskDispatcher | None = None,
        context: TaskContext | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.queue_service = queue_service or get_queue_service()
        self.worker_id = WORKER_ID
        self.dispatcher = dispatcher or build_dispatcher()
        self.context = context or build_task_context(
            self.settings, self.queue_service, self.worker_id
        )
        self.running = True
        self._shutdown_requested = False
        logger.debug("SequentialTaskProcessor initialized with worker_id: %s", self.worker_id)

    def process_task(self, task_data: dict[str, Any]) -> TaskResult:
        """Process a single task and return its result."""
        task_id = task_data.get("id", "unknown")
        start_time = time.time()

        try:
            task = TaskEnvelope.from_queue_data(task_data)
            logger.info("Processing task %s of type %s", task_id, task.task_type.value)
            result = self.dispatcher.dispatch(task, self.context)
        except Exception as e:  # noqa: BLE001
            log_processing_error(
                "sequential_task_processor",
                task_id,
                e,
                operation="process_task",
                context={"task_type": task_data.get("task_type")},
            )
            result = TaskResult.fail(str(e))

        elapsed = time.time() - start_time
        logger.info(
            "Task %s finished in %.2fs (success=%s)", task_id, elapsed, result.success
        )
        return result

    def finish_task(self, task_data: dict[str, Any], result: TaskResult) -> None:
        """Record the result and reschedule retryable failures."""
        task_id = task_data["id"]
        retry_count = task_data.get("retry_count", 0) or 0
        self.queue_service.complete_task(
            task_id, success=result.success, error_message=result.error_message
        )
        if result.success or not result.retryable:
            return

        max_retries = self.settings.max_retries
        if retry_count < max_retries:
            delay_seconds = retry_delay_seconds(retry_count)
            self.queue_service.retry_task(task_id, delay_seconds=delay_seconds)
            logger.info(
                "Task %s scheduled for retry %d/%d in %ds",
                task_id,
                retry_count + 1,
                max_retries,
                delay_seconds,
            )
        else:
            logger.error("Task %s exceeded max retries (%d)", task_id, max_retries)

    def _sleep(self, seconds: float, step: float = 0.1) -> None:
        # Sleep in small steps so shutdown is noticed quickly
        waited = 0.0
        while self.running and waited < seconds:
            time.sleep(step)
            waited += step

    def _install_signal_handlers(self) -> None:
        def signal_handler(signum, frame):
            if not self._shutdown_requested:
                logger.info("Received shutdown signal - stopping after the current task")
                self._shutdown_requested = True
                self.running = False
            else:
                logger.warning("Force shutdown requested - exiting immediately")
                sys.exit(1)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def run(
        self,
        max_tasks: int | None = None,
        install_signal_handlers: bool = True,
        stop_when_empty: bool = False,
    ) -> int:
        """
        Run the task processor.

        Args:
            max_tasks: Maximum number of tasks to process. None for unlimited.
            install_signal_handlers: Register SIGINT/SIGTERM for graceful stop.
            stop_when_empty: Return once the queue has no due task.

        Returns:
            Number of tasks processed.
        """
        logger.info("Starting sequential task processor (worker_id: %s)", self.worker_id)
        if install_signal_handlers:
            self._install_signal_handlers()

        processed_count = 0
        consecutive_empty_polls = 0
        max_empty_polls = 5

        while self.running:
            try:
                task_data = self.queue_service.dequeue(worker_id=self.worker_id)
                if not task_data:
                    if stop_when_empty:
                        break
                    consecutive_empty_polls += 1
                    self._sleep(5 if consecutive_empty_polls >= max_empty_polls else 1)
                    continue

                consecutive_empty_polls = 0
                result = self.process_task(task_data)
                self.finish_task(task_data, result)
                processed_count += 1

                if max_tasks and processed_count >= max_tasks:
                    logger.info("Reached max tasks limit (%d), stopping", max_tasks)
                    break

            except Exception as e:  # noqa: BLE001
                logger.error("Error in main loop: %s", e, exc_info=True)
                self._sleep(5)

        logger.info("Processor shutting down (processed %d tasks)", processed_count)
        return processed_count

    def run_single_task(self, task_data: dict[str, Any]) -> TaskResult:
        """Process one dequeued task without the main loop."""
        result = self.process_task(task_data)
        self.finish_task(task_data, result)
        return result
