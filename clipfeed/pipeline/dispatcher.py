"""Route dequeued triggers to their handler."""

from __future__ import annotations

from collections.abc import Iterable

from clipfeed.core.logging import get_logger
from clipfeed.pipeline.task_context import TaskContext
from clipfeed.pipeline.task_handler import TaskHandler
from clipfeed.pipeline.task_models import TaskEnvelope, TaskResult
from clipfeed.services.queue import TaskType

logger = get_logger(__name__)


class TaskDispatcher:
    """One handler per trigger type; registration order does not matter."""

    def __init__(self, handlers: Iterable[TaskHandler]) -> None:
        self._registry: dict[TaskType, TaskHandler] = {}
        for handler in handlers:
            existing = self._registry.setdefault(handler.task_type, handler)
            if existing is not handler:
                raise ValueError(
                    f"{type(handler).__name__} and {type(existing).__name__} "
                    f"both handle {handler.task_type.value}"
                )

    @property
    def task_types(self) -> frozenset[TaskType]:
        return frozenset(self._registry)

    def dispatch(self, task: TaskEnvelope, context: TaskContext) -> TaskResult:
        handler = self._registry.get(task.task_type)
        if handler is None:
            # Nobody will ever consume this payload; retrying cannot help
            logger.error(
                "No handler registered for %s (task %s)",
                task.task_type.value,
                task.id,
                extra={
                    "component": "task_dispatcher",
                    "operation": "dispatch",
                    "item_id": task.id,
                    "context_data": {
                        "task_type": task.task_type.value,
                        "worker_id": context.worker_id,
                    },
                },
            )
            return TaskResult.fail(
                f"No handler for task type: {task.task_type.value}", retryable=False
            )

        logger.debug(
            "Task %s -> %s (retry %d)", task.id, type(handler).__name__, task.retry_count
        )
        return handler.handle(task, context)
