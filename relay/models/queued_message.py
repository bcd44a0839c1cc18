"""QueuedMessage model: durable record of every normalized inbound event."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)

from relay.constants.statuses import QueueStatus
from relay.db import Base, JSONType


class QueuedMessage(Base):
    """
    One row per inbound event. Written before the webhook is acknowledged,
    mutated only by the queue worker, never deleted.
    """

    __tablename__ = "queued_messages"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "channel",
            "external_message_id",
            name="uq_queued_messages_tenant_channel_external_id",
        ),
        Index("ix_queued_messages_status_enqueued_at", "status", "enqueued_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False, index=True)
    channel = Column(String(32), nullable=False)
    sender_id = Column(String(255), nullable=False)
    recipient_id = Column(String(255), nullable=False)
    message = Column(JSONType, nullable=False, default=dict)
    event_timestamp = Column(BigInteger, nullable=False)  # epoch milliseconds
    external_message_id = Column(String(255), nullable=True)
    status = Column(String(16), nullable=False, default=QueueStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    enqueued_at = Column(
        DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    claimed_at = Column(DateTime, nullable=True)
    processed_at = Column(DateTime, nullable=True)
