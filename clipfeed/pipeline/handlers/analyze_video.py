"""Video analysis task handler."""

from __future__ import annotations

from clipfeed.core.logging import get_logger
from clipfeed.pipeline.task_context import TaskContext
from clipfeed.pipeline.task_models import TaskEnvelope, TaskResult
from clipfeed.pipeline.workflows.video_analysis import VideoAnalysisWorkflow
from clipfeed.services.queue import TaskType

logger = get_logger(__name__)


class AnalyzeVideoHandler:
    """Run the analysis workflow; the terminal state lives on the analysis record."""

    task_type = TaskType.ANALYZE_VIDEO

    def handle(self, task: TaskEnvelope, context: TaskContext) -> TaskResult:
        video_id = task.payload_int("video_id")
        if video_id is None:
            logger.error("No video_id provided for analyze_video task %s", task.id)
            return TaskResult.fail("No video_id provided", retryable=False)
        if context.content_fetcher is None or context.video_analyzer is None:
            return TaskResult.fail("Video analysis services not configured", retryable=False)

        workflow = VideoAnalysisWorkflow(
            db_factory=context.db_factory,
            content_fetcher=context.content_fetcher,
            analyzer=context.video_analyzer,
            timeout_seconds=context.settings.analysis_timeout_seconds,
        )
        state = workflow.run(video_id)
        if state is None:
            return TaskResult.fail(f"Video {video_id} not found", retryable=False)
        return TaskResult.ok()
