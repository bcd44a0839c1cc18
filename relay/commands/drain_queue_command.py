"""
Command that drains a bounded batch from the durable queue.

Each claimed message is processed on its own; one failure never stops the
rest of the batch. Outcomes map to queue transitions: delivered and
accepted-undelivered complete the entry, a transient failure with attempts
left releases it back to pending, anything else fails it. Transitions are
written with their own retry budget.
"""

from __future__ import annotations

import logging
import time
from functools import partial
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from relay.commands.process_message_command import ProcessMessageCommand
from relay.config import get_settings
from relay.constants.statuses import ProcessingOutcome
from relay.core.retry import DATA_STORE_WRITE_POLICY, run_with_retry
from relay.models.queued_message import QueuedMessage
from relay.schemas.relay import ProcessingResult
from relay.services.queue_service import DurableQueue

logger = logging.getLogger(__name__)

COMPLETE = "complete"
RELEASE = "release"
FAIL = "fail"


class DrainQueueCommand:
    def __init__(
        self,
        db: Session,
        processor: Optional[ProcessMessageCommand] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self.settings = get_settings()
        self.queue = DurableQueue(db)
        self._processor = processor
        self._sleep = sleep

    @property
    def processor(self) -> ProcessMessageCommand:
        if self._processor is None:
            self._processor = ProcessMessageCommand(self.db, sleep=self._sleep)
        return self._processor

    def execute(self, limit: Optional[int] = None) -> dict[str, Any]:
        self.queue.requeue_stale(self.settings.queue_stale_after_seconds)
        batch = self.queue.dequeue_batch(limit or self.settings.queue_batch_size)

        summary: dict[str, Any] = {
            "claimed": len(batch),
            "processed": 0,
            "failed": 0,
            "released": 0,
            "results": [],
        }
        for queued in batch:
            result, transition = self._process_one(queued)
            summary["results"].append(result.model_dump(mode="json"))
            if transition == COMPLETE:
                summary["processed"] += 1
            elif transition == RELEASE:
                summary["released"] += 1
            else:
                summary["failed"] += 1

        if batch:
            logger.info(
                "Drained queue batch: claimed=%s processed=%s failed=%s released=%s",
                summary["claimed"],
                summary["processed"],
                summary["failed"],
                summary["released"],
            )
        return summary

    def _process_one(self, queued: QueuedMessage) -> tuple[ProcessingResult, str]:
        queue_id = queued.id
        attempts = queued.attempts or 0
        try:
            result = self.processor.execute(queued)
        except Exception as e:
            logger.exception("Unexpected error processing queued message %s", queue_id)
            self.db.rollback()
            result = ProcessingResult(
                outcome=ProcessingOutcome.FAILED,
                queue_id=queue_id,
                error=str(e) or e.__class__.__name__,
            )

        if result.success:
            if result.warning:
                logger.warning("Queued message %s: %s", queue_id, result.warning)
            transition = COMPLETE
            operation = partial(self.queue.mark_completed, queue_id)
        elif result.transient and attempts < self.settings.queue_max_attempts:
            transition = RELEASE
            operation = partial(self.queue.release, queue_id, result.error)
        else:
            transition = FAIL
            operation = partial(self.queue.mark_failed, queue_id, result.error)

        try:
            self._store(operation)
        except Exception as e:
            # Entry stays in processing until requeue_stale picks it up
            logger.error(
                "Could not record %s for queued message %s: %s", transition, queue_id, e
            )
        return result, transition

    def _store(self, operation: Callable[[], None]) -> None:
        def attempt() -> None:
            try:
                operation()
            except Exception:
                self.db.rollback()
                raise

        run_with_retry(attempt, DATA_STORE_WRITE_POLICY, sleep=self._sleep)
