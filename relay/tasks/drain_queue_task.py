"""Task draining the durable webhook queue; triggered by ingestion and by beat."""

from __future__ import annotations

from typing import Any, Dict, Optional

from relay.commands.drain_queue_command import DrainQueueCommand
from relay.db import db_manager
from relay.infra.celery_app import celery_app
from relay.infra.logging_config import get_logger

logger = get_logger("drain_queue_task")


@celery_app.task(name="relay.tasks.drain_queue_task.drain_queue_task")
def drain_queue_task(limit: Optional[int] = None) -> Dict[str, Any]:
    """
    Claim and process one batch of pending webhook events.

    Args:
        limit: Batch size; defaults to QUEUE_BATCH_SIZE.

    Returns:
        Counts of claimed, processed, failed and released entries.
    """
    if not db_manager.is_initialized:
        db_manager.init()
    with db_manager.db_session() as db:
        summary = DrainQueueCommand(db).execute(limit)
    summary.pop("results", None)
    if summary["claimed"]:
        logger.info("Queue drain finished", extra={"context": summary})
    return summary
