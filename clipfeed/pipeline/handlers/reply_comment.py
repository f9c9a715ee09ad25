"""Comment reply task handler."""

from __future__ import annotations

from clipfeed.core.logging import get_logger
from clipfeed.pipeline.task_context import TaskContext
from clipfeed.pipeline.task_models import TaskEnvelope, TaskResult
from clipfeed.services.discussion_responder import DiscussionResponder
from clipfeed.services.queue import TaskType

logger = get_logger(__name__)


class ReplyCommentHandler:
    task_type = TaskType.REPLY_COMMENT

    def handle(self, task: TaskEnvelope, context: TaskContext) -> TaskResult:
        comment_id = task.payload_int("comment_id")
        if comment_id is None:
            logger.error("No comment_id provided for reply_comment task %s", task.id)
            return TaskResult.fail("No comment_id provided", retryable=False)

        responder = DiscussionResponder(
            db_factory=context.db_factory,
            trigger_phrase=context.settings.reply_trigger_phrase,
            bot_username=context.settings.bot_username,
        )
        try:
            responder.respond(comment_id)
        except Exception as exc:  # noqa: BLE001
            logger.exception(
                "Reply failed for comment %s: %s",
                comment_id,
                exc,
                extra={
                    "component": "reply_comment",
                    "operation": "handle",
                    "item_id": comment_id,
                    "context_data": {"error": str(exc)},
                },
            )
            return TaskResult.fail(str(exc))
        return TaskResult.ok()
