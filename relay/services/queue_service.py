"""
Durable queue of inbound webhook events, stored in ``queued_messages``.

Enqueue commits before returning, so the webhook is only acknowledged once the
event is persisted. Claims are conditional updates on ``status = 'pending'``:
when two workers race for the same rows each row is handed to exactly one.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from relay.constants.statuses import QueueStatus
from relay.models.queued_message import QueuedMessage
from relay.schemas.relay import InboundEvent
from relay.utils.time import utcnow

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 2000


class DurableQueue:
    def __init__(self, db: Session) -> None:
        self.db = db

    def enqueue(
        self,
        tenant_id: str,
        channel: str,
        sender_id: str,
        recipient_id: str,
        message: dict[str, Any],
        timestamp: int,
    ) -> UUID:
        """
        Persist a pending QueuedMessage and return its id.

        A redelivery of an already queued platform message (same tenant,
        channel and ``message.mid``) returns the existing id.
        """
        external_message_id = message.get("mid") if message else None
        row = QueuedMessage(
            tenant_id=tenant_id,
            channel=str(channel),
            sender_id=sender_id,
            recipient_id=recipient_id,
            message=message or {},
            event_timestamp=timestamp,
            external_message_id=str(external_message_id) if external_message_id else None,
            status=QueueStatus.PENDING.value,
            attempts=0,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_by_external_id(tenant_id, str(channel), external_message_id)
            if existing is None:
                raise
            logger.info(
                "Duplicate delivery of %s message %s for tenant %s; already queued as %s",
                channel,
                external_message_id,
                tenant_id,
                existing.id,
            )
            return existing.id
        return row.id

    def enqueue_event(self, event: InboundEvent) -> UUID:
        return self.enqueue(
            tenant_id=event.tenant_id,
            channel=event.channel.value,
            sender_id=event.sender_id,
            recipient_id=event.recipient_id,
            message=event.message,
            timestamp=event.timestamp,
        )

    def get(self, queue_id: UUID) -> Optional[QueuedMessage]:
        return self.db.query(QueuedMessage).filter(QueuedMessage.id == queue_id).first()

    def get_by_external_id(
        self, tenant_id: str, channel: str, external_message_id: Optional[str]
    ) -> Optional[QueuedMessage]:
        if not external_message_id:
            return None
        return (
            self.db.query(QueuedMessage)
            .filter(
                QueuedMessage.tenant_id == tenant_id,
                QueuedMessage.channel == channel,
                QueuedMessage.external_message_id == str(external_message_id),
            )
            .first()
        )

    def dequeue_batch(self, limit: int) -> List[QueuedMessage]:
        """Claim up to ``limit`` pending entries (oldest first) and mark them processing."""
        if limit <= 0:
            return []
        claimed_ids = self._claim(self._select_candidate_ids(limit))
        if not claimed_ids:
            return []
        return (
            self.db.query(QueuedMessage)
            .filter(QueuedMessage.id.in_(claimed_ids))
            .order_by(QueuedMessage.enqueued_at)
            .populate_existing()
            .all()
        )

    def _select_candidate_ids(self, limit: int) -> List[UUID]:
        rows = (
            self.db.query(QueuedMessage.id)
            .filter(QueuedMessage.status == QueueStatus.PENDING.value)
            .order_by(QueuedMessage.enqueued_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
            .all()
        )
        return [row.id for row in rows]

    def _claim(self, queue_ids: List[UUID]) -> List[UUID]:
        now = utcnow()
        claimed: List[UUID] = []
        for queue_id in queue_ids:
            updated = (
                self.db.query(QueuedMessage)
                .filter(
                    QueuedMessage.id == queue_id,
                    QueuedMessage.status == QueueStatus.PENDING.value,
                )
                .update(
                    {
                        QueuedMessage.status: QueueStatus.PROCESSING.value,
                        QueuedMessage.attempts: QueuedMessage.attempts + 1,
                        QueuedMessage.claimed_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if updated == 1:
                claimed.append(queue_id)
        self.db.commit()
        return claimed

    def mark_completed(self, queue_id: UUID) -> None:
        self._transition(queue_id, QueueStatus.COMPLETED, processed=True)

    def mark_failed(self, queue_id: UUID, error: Optional[str] = None) -> None:
        self._transition(queue_id, QueueStatus.FAILED, error=error, processed=True)

    def release(self, queue_id: UUID, error: Optional[str] = None) -> None:
        """Hand a claimed entry back to the queue after a transient failure."""
        self._transition(queue_id, QueueStatus.PENDING, error=error)

    def requeue_stale(self, older_than_seconds: int) -> int:
        """Return ``processing`` entries whose worker never finished to ``pending``."""
        cutoff = utcnow() - timedelta(seconds=older_than_seconds)
        count = (
            self.db.query(QueuedMessage)
            .filter(
                QueuedMessage.status == QueueStatus.PROCESSING.value,
                QueuedMessage.claimed_at < cutoff,
            )
            .update(
                {QueuedMessage.status: QueueStatus.PENDING.value},
                synchronize_session=False,
            )
        )
        self.db.commit()
        if count:
            logger.warning("Requeued %s stale queue entries", count)
        return count

    def count_by_status(self, status: QueueStatus) -> int:
        return (
            self.db.query(QueuedMessage)
            .filter(QueuedMessage.status == status.value)
            .count()
        )

    def _transition(
        self,
        queue_id: UUID,
        status: QueueStatus,
        error: Optional[str] = None,
        processed: bool = False,
    ) -> None:
        values: dict[Any, Any] = {QueuedMessage.status: status.value}
        if error is not None:
            values[QueuedMessage.last_error] = error[:MAX_ERROR_LENGTH]
        if processed:
            values[QueuedMessage.processed_at] = utcnow()
        self.db.query(QueuedMessage).filter(QueuedMessage.id == queue_id).update(
            values, synchronize_session=False
        )
        self.db.commit()
