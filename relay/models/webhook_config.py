"""WebhookConfig model: verification token used by the subscription handshake."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, String, Uuid

from relay.db import Base
from relay.models.mixins import TimestampMixin


class WebhookConfig(Base, TimestampMixin):
    __tablename__ = "webhook_configs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False, index=True)
    channel = Column(String(32), nullable=False)
    verification_token = Column(String(255), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
