"""Tests for the sequential task processor."""

import pytest

from clipfeed.models.schema import ProcessingTask
from clipfeed.pipeline.dispatcher import TaskDispatcher
from clipfeed.pipeline.sequential_task_processor import (
    SequentialTaskProcessor,
    retry_delay_seconds,
)
from clipfeed.pipeline.task_context import TaskContext
from clipfeed.pipeline.task_models import TaskResult
from clipfeed.services.queue import TaskStatus, TaskType


class ScriptedHandler:
    """Return queued results in order, then succeed."""

    def __init__(self, task_type: TaskType, *results: TaskResult):
        self.task_type = task_type
        self.results = list(results)
        self.calls = 0

    def handle(self, task, context):
        self.calls += 1
        if self.results:
            return self.results.pop(0)
        return TaskResult.ok()


class ExplodingHandler:
    task_type = TaskType.PROCESS_ITEM

    def handle(self, task, context):
        raise RuntimeError("boom")


@pytest.fixture
def make_processor(queue_service, settings, db_factory):
    def _make(*handlers):
        context = TaskContext(
            queue_service=queue_service,
            settings=settings,
            worker_id="test-worker",
            db_factory=db_factory,
        )
        return SequentialTaskProcessor(
            queue_service=queue_service,
            dispatcher=TaskDispatcher(handlers),
            context=context,
            settings=settings,
        )

    return _make


def _task_row(db_factory, task_id):
    with db_factory() as db:
        task = db.get(ProcessingTask, task_id)
        return task.status, task.retry_count, task.error_message


class TestRetryDelay:
    @pytest.mark.parametrize(
        ("retry_count", "expected"),
        [(0, 60), (1, 120), (3, 480), (6, 3600), (10, 3600)],
    )
    def test_backoff_is_capped(self, retry_count, expected):
        assert retry_delay_seconds(retry_count) == expected


class TestSequentialTaskProcessor:
    def test_successful_task_completes(self, make_processor, queue_service, db_factory):
        handler = ScriptedHandler(TaskType.PROCESS_BATCH)
        processor = make_processor(handler)
        task_id = queue_service.enqueue(TaskType.PROCESS_BATCH, {"batch_id": "b"})

        processed = processor.run(install_signal_handlers=False, stop_when_empty=True)

        assert processed == 1
        assert handler.calls == 1
        assert _task_row(db_factory, task_id) == (TaskStatus.COMPLETED.value, 0, None)

    def test_retryable_failure_is_rescheduled(self, make_processor, queue_service, db_factory):
        handler = ScriptedHandler(TaskType.PROCESS_BATCH, TaskResult.fail("database is locked"))
        processor = make_processor(handler)
        task_id = queue_service.enqueue(TaskType.PROCESS_BATCH, {"batch_id": "b"})

        processed = processor.run(install_signal_handlers=False, stop_when_empty=True)

        # The retry is delayed, so the queue looks empty afterwards
        assert processed == 1
        status, retry_count, _ = _task_row(db_factory, task_id)
        assert status == TaskStatus.PENDING.value
        assert retry_count == 1
        assert queue_service.dequeue() is None

    def test_permanent_failure_is_not_retried(self, make_processor, queue_service, db_factory):
        handler = ScriptedHandler(
            TaskType.ANALYZE_VIDEO, TaskResult.fail("Video 9 not found", retryable=False)
        )
        processor = make_processor(handler)
        task_id = queue_service.enqueue(TaskType.ANALYZE_VIDEO, {"video_id": 9})

        processor.run(install_signal_handlers=False, stop_when_empty=True)

        assert _task_row(db_factory, task_id) == (
            TaskStatus.FAILED.value,
            0,
            "Video 9 not found",
        )

    def test_max_retries_leaves_task_failed(self, make_processor, queue_service, db_factory, settings):
        processor = make_processor(ScriptedHandler(TaskType.PROCESS_BATCH))
        task_id = queue_service.enqueue(TaskType.PROCESS_BATCH, {"batch_id": "b"})
        task_data = queue_service.dequeue()
        task_data["retry_count"] = settings.max_retries

        processor.finish_task(task_data, TaskResult.fail("still locked"))

        status, retry_count, error = _task_row(db_factory, task_id)
        assert status == TaskStatus.FAILED.value
        assert retry_count == 0
        assert error == "still locked"

    def test_handler_exception_becomes_failure(self, make_processor, queue_service, db_factory):
        processor = make_processor(ExplodingHandler())
        task_id = queue_service.enqueue(TaskType.PROCESS_ITEM, {"item_id": 1})
        task_data = queue_service.dequeue()

        result = processor.run_single_task(task_data)

        assert not result.success
        assert result.error_message == "boom"
        status, retry_count, _ = _task_row(db_factory, task_id)
        assert status == TaskStatus.PENDING.value
        assert retry_count == 1

    def test_unknown_task_type_fails_permanently(self, make_processor, queue_service, db_factory):
        processor = make_processor(ScriptedHandler(TaskType.PROCESS_BATCH))
        task_id = queue_service.enqueue(TaskType.REPLY_COMMENT, {"comment_id": 1})

        processor.run(install_signal_handlers=False, stop_when_empty=True)

        status, retry_count, error = _task_row(db_factory, task_id)
        assert status == TaskStatus.FAILED.value
        assert retry_count == 0
        assert "reply_comment" in error

    def test_max_tasks_stops_loop(self, make_processor, queue_service):
        handler = ScriptedHandler(TaskType.PROCESS_ITEM)
        processor = make_processor(handler)
        for item_id in range(3):
            queue_service.enqueue(TaskType.PROCESS_ITEM, {"item_id": item_id})

        processed = processor.run(max_tasks=2, install_signal_handlers=False, stop_when_empty=True)

        assert processed == 2
        assert handler.calls == 2
