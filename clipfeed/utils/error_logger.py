"""
Structured error logging helpers.

Errors logged here flow through the JSONL error handler configured in
clipfeed/core/logging.py and land in logs/errors/.

Usage:
    from clipfeed.utils.error_logger import log_error, log_processing_error, log_http_error

    log_error("batch_ingestion", error, operation="commit", context={"batch_id": batch_id})
    log_processing_error("video_analysis", item_id=video_id, error=e, operation="model_call")
    log_http_error("video_metadata", url=oembed_url, response=resp)
"""

import logging
from collections import defaultdict
from typing import Any

from clipfeed.core.logging import get_logger

PIPELINE_METRICS: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))


def _extract_http_details(response: Any) -> dict[str, Any]:
    """Pull status, url and a body excerpt out of an HTTP response object."""
    details: dict[str, Any] = {}

    try:
        if hasattr(response, "status_code"):
            details["status_code"] = response.status_code
        if hasattr(response, "url"):
            details["url"] = str(response.url)
        if hasattr(response, "headers"):
            details["headers"] = {
                k: v[:200] if isinstance(v, str) else v for k, v in dict(response.headers).items()
            }
        if hasattr(response, "text"):
            details["response_body"] = response.text[:1000]
    except Exception as e:  # noqa: BLE001
        details["extraction_error"] = f"Failed to extract HTTP details: {e}"

    return details


def log_error(
    component: str,
    error: Exception,
    *,
    operation: str | None = None,
    context: dict[str, Any] | None = None,
    http_response: Any | None = None,
    item_id: str | int | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log an error with full structured context.

    Args:
        component: Component name for identifying the source of errors.
        error: The exception that occurred.
        operation: Name of the operation that failed.
        context: Additional context data.
        http_response: HTTP response object (if applicable).
        item_id: ID of the item being processed (if applicable).
        level: Log level, ERROR unless the failure is expected and degraded.
    """
    logger = get_logger(f"error.{component}")

    operation_str = f" during {operation}" if operation else ""
    item_str = f" (item: {item_id})" if item_id is not None else ""

    logger.log(
        level,
        f"{component} error{operation_str}{item_str}: {error}",
        exc_info=error if error.__traceback__ is not None else None,
        extra={
            "component": component,
            "operation": operation,
            "context_data": context,
            "http_details": _extract_http_details(http_response) if http_response else None,
            "item_id": item_id,
            "error_type": type(error).__name__,
            "error_message": str(error),
        },
    )


def log_processing_error(
    component: str,
    item_id: str | int,
    error: Exception,
    *,
    operation: str | None = None,
    context: dict[str, Any] | None = None,
) -> None:
    """Log a processing error tied to a specific item."""
    log_error(
        component,
        error,
        operation=operation or "processing",
        context=context,
        item_id=item_id,
    )


def log_http_error(
    component: str,
    url: str,
    *,
    response: Any | None = None,
    error: Exception | None = None,
    operation: str | None = None,
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> None:
    """Log an HTTP failure with response details."""
    full_context = {"url": url}
    if context:
        full_context.update(context)

    if not error:
        status_code = getattr(response, "status_code", "unknown")
        error = Exception(f"HTTP error for {url} (status: {status_code})")

    log_error(
        component,
        error,
        operation=operation or "http_request",
        context=full_context,
        http_response=response,
        level=level,
    )


def increment_pipeline_metric(component: str, metric: str, amount: int = 1) -> None:
    """Increment an in-process pipeline counter."""
    PIPELINE_METRICS[component][metric] += amount


def get_pipeline_metrics() -> dict[str, dict[str, int]]:
    """Return current pipeline counters."""
    return {component: dict(metrics) for component, metrics in PIPELINE_METRICS.items()}


def reset_pipeline_metrics() -> None:
    """Clear pipeline counters. Used by tests to avoid cross pollution."""
    PIPELINE_METRICS.clear()
