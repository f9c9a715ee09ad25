"""Task models for the sequential pipeline processor."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clipfeed.services.queue import TaskType


class TaskEnvelope(BaseModel):
    """Normalized task payload from the queue."""

    model_config = ConfigDict(extra="ignore")

    id: int
    task_type: TaskType
    payload: dict[str, Any] = Field(default_factory=dict)
    retry_count: int = 0
    status: str | None = None
    created_at: datetime | None = None
    started_at: datetime | None = None

    @field_validator("payload", mode="before")
    @classmethod
    def normalize_payload(cls, value: Any) -> dict[str, Any]:
        """Normalize payload to a dictionary."""
        if isinstance(value, dict):
            return value
        return {}

    @classmethod
    def from_queue_data(cls, task_data: dict[str, Any]) -> TaskEnvelope:
        """Build a TaskEnvelope from raw queue data."""
        return cls.model_validate(task_data)

    def payload_int(self, key: str) -> int | None:
        """Read an integer id from the payload, tolerating string ids."""
        value = self.payload.get(key)
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class TaskResult(BaseModel):
    """Outcome for task processing."""

    success: bool
    error_message: str | None = None
    retryable: bool = True

    @classmethod
    def ok(cls) -> TaskResult:
        """Return a successful task result."""
        return cls(success=True)

    @classmethod
    def fail(cls, error_message: str | None = None, retryable: bool = True) -> TaskResult:
        """Return a failed task result."""
        return cls(success=False, error_message=error_message, retryable=retryable)
