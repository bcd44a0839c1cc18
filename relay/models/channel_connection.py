"""ChannelConnection model: per-tenant delivery credential for one channel account."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    LargeBinary,
    String,
    UniqueConstraint,
    Uuid,
)

from relay.db import Base
from relay.models.mixins import TimestampMixin


class ChannelConnection(Base, TimestampMixin):
    """
    Written by the OAuth connection flow; the relay only reads it.
    account_id is the Facebook page id or the Instagram account id.
    The access token is Fernet-encrypted.
    """

    __tablename__ = "channel_connections"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "channel",
            "account_id",
            name="uq_channel_connections_tenant_channel_account",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False, index=True)
    channel = Column(String(32), nullable=False)
    account_id = Column(String(255), nullable=False)
    account_name = Column(String(255), nullable=True)
    encrypted_access_token = Column(LargeBinary, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
