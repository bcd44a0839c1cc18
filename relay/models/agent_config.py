"""AgentConfig model: which AI backend agent answers for a tenant."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, LargeBinary, String, Uuid

from relay.db import Base
from relay.models.mixins import TimestampMixin


class AgentConfig(Base, TimestampMixin):
    """
    One per tenant. The API key is optional (Fernet-encrypted); when absent the
    environment default VOICEFLOW_API_KEY is used.
    """

    __tablename__ = "agent_configs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False, unique=True, index=True)
    encrypted_api_key = Column(LargeBinary, nullable=True)
    version_id = Column(String(128), nullable=True)
    runtime_url = Column(String(512), nullable=True)
