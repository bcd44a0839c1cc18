"""
Command to ingest Facebook Page and Instagram webhook deliveries.

Validates the Meta signature over the raw body, normalizes every messaging
event in the payload and persists each one to the durable queue before the
platform gets its 200. Processing happens afterwards in the queue worker.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Optional

from fastapi import HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from relay.adapters.registry import AdapterRegistry, build_adapter_registry
from relay.commands.drain_queue_command import DrainQueueCommand
from relay.config import get_settings
from relay.core.retry import DATA_STORE_WRITE_POLICY, run_with_retry
from relay.core.signature import validate_webhook
from relay.schemas.relay import InboundEvent
from relay.services.queue_service import DurableQueue
from relay.tasks.drain_queue_task import drain_queue_task

MESSAGING_OBJECTS = frozenset({"page", "instagram"})


class MetaWebhookCommand:
    """
    Ingest one webhook delivery for ``tenant_id`` on ``channel``.

    Signature and channel problems are raised as HTTPException (401 / 400).
    Once the payload is accepted any failure is reported in a 200 body so the
    platform does not retry into a systematic error.
    """

    def __init__(
        self,
        db: Session,
        registry: Optional[AdapterRegistry] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self.settings = get_settings()
        self._adapters = registry or build_adapter_registry()
        self._sleep = sleep
        self.queue = DurableQueue(db)
        self.logger = logging.getLogger(__name__)

    async def execute(
        self, request: Request, tenant_id: str, channel: str
    ) -> dict[str, Any]:
        """
        Execute ingestion: verify, parse, enqueue, then trigger the worker.

        Returns:
            dict: ``ignored`` for non-messaging objects, ``success`` with the
                number of queued (and inline-processed) events, or ``error``.

        Raises:
            HTTPException: 401 on a bad signature, 400 on an unknown channel
                or a body that is not a JSON object.
        """
        body = await request.body()
        check = validate_webhook(request.headers, body, self.settings.meta_app_secret)
        if not check.valid:
            self.logger.warning(
                "Rejected webhook for tenant %s: %s", tenant_id, check.message
            )
            raise HTTPException(
                status_code=401,
                detail={"error": "Invalid webhook signature", "details": check.message},
            )

        adapter = self._adapters.get(channel)
        if adapter is None:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid channel '{channel}'. Expected one of: "
                + ", ".join(c.value for c in self._adapters.list_channels()),
            )

        try:
            payload = json.loads(body)
        except ValueError as e:
            self.logger.warning("Webhook body is not valid JSON: %s", e)
            raise HTTPException(
                status_code=400, detail="Invalid request body. JSON parsing failed."
            ) from e
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Body must be a JSON object")

        try:
            if payload.get("object") not in MESSAGING_OBJECTS:
                return {"status": "ignored", "message": "Not a messaging webhook event"}

            events = adapter.parse_webhook(tenant_id, payload)
            queued = 0
            for event in events:
                await run_in_threadpool(self._enqueue, event)
                queued += 1
            processed = await self._after_enqueue(queued)
            return {
                "status": "success",
                "message": "Webhook events received and queued for processing",
                "queued": queued,
                "processed": processed,
            }
        except Exception as e:
            self.logger.exception(
                "Error processing %s webhook for tenant %s", channel, tenant_id
            )
            return {
                "status": "error",
                "message": "Error processing webhook",
                "error": str(e) or e.__class__.__name__,
            }

    def _enqueue(self, event: InboundEvent) -> None:
        def attempt() -> None:
            try:
                self.queue.enqueue_event(event)
            except Exception:
                self.db.rollback()
                raise

        run_with_retry(attempt, DATA_STORE_WRITE_POLICY, sleep=self._sleep)

    async def _after_enqueue(self, queued: int) -> int:
        """Drain inline when configured, otherwise hand off to the worker."""
        if queued == 0:
            return 0
        inline_batch = self.settings.inline_processing_batch_size
        if inline_batch > 0:
            summary = await run_in_threadpool(
                DrainQueueCommand(self.db).execute, inline_batch
            )
            return summary["processed"]
        try:
            drain_queue_task.delay()
        except Exception as e:
            # Beat picks the entries up on its next tick
            self.logger.warning("Could not schedule queue drain: %s", e)
        return 0
