#!/usr/bin/env python3
"""
Run workers using the sequential task processor.
"""

import argparse
import sys
import threading
import time

from clipfeed.core.db import init_db
from clipfeed.core.logging import get_logger, setup_logging
from clipfeed.pipeline.sequential_task_processor import SequentialTaskProcessor
from clipfeed.services.queue import get_queue_service

logger = get_logger(__name__)


def _log_stats(stats: dict) -> None:
    by_status = stats.get("by_status", {})
    logger.info(
        "Queue stats - Pending: %d, Processing: %d, Completed: %d, Failed: %d",
        by_status.get("pending", 0),
        by_status.get("processing", 0),
        by_status.get("completed", 0),
        by_status.get("failed", 0),
    )
    for task_type, count in stats.get("pending_by_type", {}).items():
        logger.info("  pending %s: %d", task_type, count)


def main() -> int:
    parser = argparse.ArgumentParser(description="Run sequential task processor")
    parser.add_argument(
        "--max-tasks",
        type=int,
        default=None,
        help="Maximum number of tasks to process (default: unlimited)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--stats-interval",
        type=int,
        default=30,
        help="Show stats every N seconds (default: 30, 0 to disable)",
    )
    args = parser.parse_args()

    setup_logging(level="DEBUG" if args.debug else "INFO")

    logger.info("Initializing database...")
    init_db()

    queue_service = get_queue_service()
    _log_stats(queue_service.get_queue_stats())

    if args.max_tasks:
        logger.info("Will process up to %d tasks", args.max_tasks)
    logger.info("Press Ctrl+C to stop")

    processor = SequentialTaskProcessor(queue_service=queue_service)

    if args.stats_interval > 0:

        def show_stats():
            while processor.running:
                time.sleep(args.stats_interval)
                if processor.running:
                    _log_stats(queue_service.get_queue_stats())

        threading.Thread(target=show_stats, daemon=True).start()

    try:
        processor.run(max_tasks=args.max_tasks)
    except Exception as e:  # noqa: BLE001
        logger.error("Unexpected error: %s", e, exc_info=True)
        return 1

    _log_stats(queue_service.get_queue_stats())
    return 0


if __name__ == "__main__":
    sys.exit(main())
