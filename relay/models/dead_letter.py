"""DeadLetterRecord model: messages the AI backend could not answer after retries."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text, Uuid

from relay.db import Base, JSONType


class DeadLetterRecord(Base):
    """Write-only from the pipeline; read by replay tooling."""

    __tablename__ = "dead_letters"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False, index=True)
    message_text = Column(Text, nullable=True)
    failure_reason = Column(Text, nullable=False)
    context = Column(JSONType, nullable=False, default=dict)
    created_at = Column(
        DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )
