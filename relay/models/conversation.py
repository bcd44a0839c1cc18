"""Conversation and Message models: the durable thread with one external contact."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from relay.db import Base
from relay.models.mixins import TimestampMixin


class Conversation(Base, TimestampMixin):
    """One thread per (tenant, channel, external contact). Outlives sessions."""

    __tablename__ = "conversations"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "channel",
            "external_id",
            name="uq_conversations_tenant_channel_external_id",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(64), nullable=False, index=True)
    channel = Column(String(32), nullable=False)
    external_id = Column(String(255), nullable=False)
    participant_id = Column(String(255), nullable=True)
    participant_name = Column(String(255), nullable=True)
    last_message_at = Column(DateTime, nullable=True)
    session_id = Column(
        Uuid, ForeignKey("sessions.id", ondelete="SET NULL"), nullable=True
    )

    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.sent_at",
    )


class Message(Base):
    """Append-only; sender_type is 'user' (contact) or 'assistant' (AI reply)."""

    __tablename__ = "messages"

    __table_args__ = (
        Index("ix_messages_conversation_id_sent_at", "conversation_id", "sent_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_type = Column(String(16), nullable=False)  # 'user' | 'assistant'
    content = Column(Text, nullable=True)
    external_id = Column(String(255), nullable=True)
    sent_at = Column(
        DateTime, nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    conversation = relationship("Conversation", back_populates="messages")
