"""Session model: short-lived conversational context for one contact on one channel."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String, Uuid

from relay.db import Base, JSONType


class Session(Base):
    """
    Keyed by (tenant_id, contact_id, channel). Several rows may exist per key
    over time; only the one whose expires_at is in the future is live.
    """

    __tablename__ = "sessions"

    __table_args__ = (
        Index(
            "ix_sessions_tenant_contact_channel_expires",
            "tenant_id",
            "contact_id",
            "channel",
            "expires_at",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False)
    contact_id = Column(String(255), nullable=False)
    channel = Column(String(32), nullable=False)
    context = Column(JSONType, nullable=False, default=dict)
    created_at = Column(
        DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    last_extended_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
