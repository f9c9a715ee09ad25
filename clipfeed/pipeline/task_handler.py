"""Contract shared by the queue handlers."""

from __future__ import annotations

from typing import Protocol

from clipfeed.pipeline.task_context import TaskContext
from clipfeed.pipeline.task_models import TaskEnvelope, TaskResult
from clipfeed.services.queue import TaskType


class TaskHandler(Protocol):
    """Consumes one trigger type.

    A handler returns ``TaskResult.fail(retryable=True)`` only when
    redelivering the same payload can succeed; malformed payloads and
    missing rows are permanent failures.
    """

    task_type: TaskType

    def handle(self, task: TaskEnvelope, context: TaskContext) -> TaskResult: ...
