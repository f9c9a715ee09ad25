#!/usr/bin/env python3
"""Inspect and manage the task queue from the command line."""

from __future__ import annotations

import argparse
import os
import sys
from datetime import UTC, datetime

# Add parent directory for local imports.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clipfeed.core.db import get_db, init_db  # noqa: E402
from clipfeed.core.logging import setup_logging  # noqa: E402
from clipfeed.models.schema import InboundItem, Video  # noqa: E402
from clipfeed.services.queue import QueueService, TaskType  # noqa: E402


def _print_header(title: str) -> None:
    """Print a lightweight section header."""
    print(f"\n== {title} ==")


def show_status(queue_service: QueueService) -> None:
    """Print task counts by status and pending counts by type."""
    stats = queue_service.get_queue_stats()

    _print_header("Queue Status")
    by_status = stats.get("by_status", {})
    if not by_status:
        print("No tasks found.")
    for status, count in sorted(by_status.items()):
        print(f"{status or 'unknown':11} {int(count):6}")

    _print_header("Pending By Type")
    pending = stats.get("pending_by_type", {})
    if not pending:
        print("None")
    for task_type, count in sorted(pending.items()):
        print(f"{task_type:16} {int(count):6}")

    print(f"\nFailures in the last hour: {stats.get('recent_failures') or 0}")


def publish_batch(queue_service: QueueService, batch_id: str) -> int:
    """Enqueue a batch-ready message for ``batch_id``."""
    return queue_service.enqueue(
        TaskType.PROCESS_BATCH,
        {"batch_id": batch_id, "timestamp": datetime.now(UTC).isoformat()},
    )


def enqueue_item(queue_service: QueueService, item_id: int) -> int | None:
    """Enqueue an item-created trigger; None when the item does not exist."""
    with get_db() as db:
        if db.get(InboundItem, item_id) is None:
            return None
    return queue_service.enqueue(TaskType.PROCESS_ITEM, {"item_id": item_id})


def reanalyze(queue_service: QueueService, video_id: int) -> int | None:
    """Re-trigger analysis for a video; None when the video does not exist."""
    with get_db() as db:
        if db.get(Video, video_id) is None:
            return None
    return queue_service.enqueue(TaskType.ANALYZE_VIDEO, {"video_id": video_id})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("status", help="Show queue status summary")

    batch_parser = subparsers.add_parser("publish-batch", help="Publish a batch-ready message")
    batch_parser.add_argument("batch_id", help="Batch identifier")

    item_parser = subparsers.add_parser("enqueue-item", help="Trigger processing of one item")
    item_parser.add_argument("item_id", type=int, help="Inbound item id")

    reanalyze_parser = subparsers.add_parser("reanalyze", help="Re-run analysis for a video")
    reanalyze_parser.add_argument("video_id", type=int, help="Video id")

    cleanup_parser = subparsers.add_parser("cleanup", help="Delete old finished tasks")
    cleanup_parser.add_argument(
        "--days", type=int, default=7, help="Age in days of finished tasks to delete"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the queue-control CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "status"

    setup_logging(level="WARNING")
    init_db()
    queue_service = QueueService()

    if args.command == "status":
        show_status(queue_service)
        return 0

    if args.command == "publish-batch":
        task_id = publish_batch(queue_service, args.batch_id)
        print(f"Enqueued process_batch task {task_id} for batch {args.batch_id}")
        return 0

    if args.command == "enqueue-item":
        task_id = enqueue_item(queue_service, args.item_id)
        if task_id is None:
            print(f"Inbound item {args.item_id} not found")
            return 1
        print(f"Enqueued process_item task {task_id}")
        return 0

    if args.command == "reanalyze":
        task_id = reanalyze(queue_service, args.video_id)
        if task_id is None:
            print(f"Video {args.video_id} not found")
            return 1
        print(f"Enqueued analyze_video task {task_id}")
        return 0

    if args.command == "cleanup":
        deleted = queue_service.cleanup_old_tasks(days=args.days)
        print(f"Deleted {deleted} tasks older than {args.days} days")
        return 0

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
