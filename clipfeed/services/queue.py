from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from clipfeed.core.db import get_db
from clipfeed.core.logging import get_logger
from clipfeed.models.schema import ProcessingTask

logger = get_logger(__name__)


class TaskType(str, Enum):
    PROCESS_ITEM = "process_item"
    PROCESS_BATCH = "process_batch"
    ANALYZE_VIDEO = "analyze_video"
    REPLY_COMMENT = "reply_comment"


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class QueueService:
    """Simple database-backed task queue.

    Each pending row is one trigger delivery. A task that fails is put back
    to pending by ``retry_task``, which gives at-least-once delivery.
    """

    def __init__(
        self, db_factory: Callable[[], AbstractContextManager[Session]] = get_db
    ) -> None:
        self._db_factory = db_factory

    def stage(
        self,
        db: Session,
        task_type: TaskType,
        payload: dict[str, Any] | None = None,
    ) -> ProcessingTask:
        """Add a task to ``db`` without committing.

        The task becomes visible only when the caller's transaction commits,
        so it is published atomically with the writes that triggered it.
        """
        task = ProcessingTask(
            task_type=task_type.value,
            payload=payload or {},
            status=TaskStatus.PENDING.value,
            retry_count=0,
            created_at=datetime.now(UTC),
        )
        db.add(task)
        return task

    def enqueue(self, task_type: TaskType, payload: dict[str, Any] | None = None) -> int:
        """
        Add a task to the queue.

        Returns:
            Task ID
        """
        with self._db_factory() as db:
            task = self.stage(db, task_type, payload)
            db.commit()
            db.refresh(task)

            logger.info(f"Enqueued task {task.id} of type {task_type.value}")
            return task.id

    def dequeue(
        self, task_type: TaskType | None = None, worker_id: str = "worker"
    ) -> dict[str, Any] | None:
        """
        Claim the next available task from the queue.

        Args:
            task_type: Filter by task type (optional)
            worker_id: ID of the worker claiming the task

        Returns:
            Task data as dictionary or None if queue is empty
        """
        with self._db_factory() as db:
            query = db.query(ProcessingTask).filter(
                ProcessingTask.status == TaskStatus.PENDING.value,
                ProcessingTask.created_at <= datetime.now(UTC),
            )

            if task_type:
                query = query.filter(ProcessingTask.task_type == task_type.value)

            query = query.order_by(ProcessingTask.retry_count, ProcessingTask.created_at)

            task = query.with_for_update(skip_locked=True).first()
            if not task:
                return None

            task.status = TaskStatus.PROCESSING.value
            task.started_at = datetime.now(UTC)
            db.commit()

            # Detach plain values so callers never touch an expired instance
            task_data = {
                "id": task.id,
                "task_type": task.task_type,
                "payload": task.payload,
                "retry_count": task.retry_count,
                "status": task.status,
                "created_at": task.created_at,
                "started_at": task.started_at,
            }

            logger.debug(f"Dequeued task {task_data['id']} for {worker_id}")
            return task_data

    def complete_task(self, task_id: int, success: bool = True, error_message: str | None = None):
        """Mark a task as completed or failed."""
        with self._db_factory() as db:
            task = db.query(ProcessingTask).filter(ProcessingTask.id == task_id).first()

            if not task:
                logger.error(f"Task {task_id} not found")
                return

            task.completed_at = datetime.now(UTC)

            if success:
                task.status = TaskStatus.COMPLETED.value
                task.error_message = None
                logger.info(f"Task {task_id} completed successfully")
            else:
                task.status = TaskStatus.FAILED.value
                task.error_message = error_message
                logger.error(f"Task {task_id} failed: {error_message}")

            db.commit()

    def retry_task(self, task_id: int, delay_seconds: int = 60):
        """Put a failed task back on the queue after a delay."""
        with self._db_factory() as db:
            task = db.query(ProcessingTask).filter(ProcessingTask.id == task_id).first()

            if not task:
                logger.error(f"Task {task_id} not found")
                return

            task.status = TaskStatus.PENDING.value
            task.retry_count += 1
            task.started_at = None
            task.completed_at = None

            # A future created_at keeps the task invisible to dequeue until due
            task.created_at = datetime.now(UTC) + timedelta(seconds=delay_seconds)

            db.commit()
            logger.info(f"Task {task_id} scheduled for retry (attempt {task.retry_count})")

    def get_queue_stats(self) -> dict[str, Any]:
        """Get queue statistics."""
        with self._db_factory() as db:
            stats: dict[str, Any] = {}

            status_counts = (
                db.query(ProcessingTask.status, func.count(ProcessingTask.id))
                .group_by(ProcessingTask.status)
                .all()
            )
            stats["by_status"] = {status: count for status, count in status_counts}

            type_counts = (
                db.query(ProcessingTask.task_type, func.count(ProcessingTask.id))
                .filter(ProcessingTask.status == TaskStatus.PENDING.value)
                .group_by(ProcessingTask.task_type)
                .all()
            )
            stats["pending_by_type"] = {task_type: count for task_type, count in type_counts}

            one_hour_ago = datetime.now(UTC) - timedelta(hours=1)
            stats["recent_failures"] = (
                db.query(func.count(ProcessingTask.id))
                .filter(
                    and_(
                        ProcessingTask.status == TaskStatus.FAILED.value,
                        ProcessingTask.completed_at >= one_hour_ago,
                    )
                )
                .scalar()
            )

            return stats

    def cleanup_old_tasks(self, days: int = 7) -> int:
        """Remove completed tasks older than specified days."""
        with self._db_factory() as db:
            cutoff_date = datetime.now(UTC) - timedelta(days=days)

            deleted = (
                db.query(ProcessingTask)
                .filter(
                    and_(
                        ProcessingTask.status == TaskStatus.COMPLETED.value,
                        ProcessingTask.completed_at < cutoff_date,
                    )
                )
                .delete()
            )

            db.commit()
            logger.info(f"Cleaned up {deleted} old completed tasks")
            return deleted


# Global instance
_queue_service = None


def get_queue_service() -> QueueService:
    """Get the global queue service instance."""
    global _queue_service
    if _queue_service is None:
        _queue_service = QueueService()
    return _queue_service
