"""
Normalized message contracts for the relay.

Channel adapters turn platform payloads into InboundEvent; the pipeline
reports per-message results as ProcessingResult.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from relay.constants.statuses import ProcessingOutcome


class Channel(str, Enum):
    """Supported messaging channels."""

    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"


class EventKind(str, Enum):
    MESSAGE = "message"
    POSTBACK = "postback"


class InboundEvent(BaseModel):
    """Normalized inbound event (adapter → queue). Immutable once captured."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    channel: Channel
    kind: EventKind = EventKind.MESSAGE
    sender_id: str
    recipient_id: str
    message: dict[str, Any] = Field(default_factory=dict)
    timestamp: int  # epoch milliseconds
    postback: Optional[dict[str, Any]] = None

    @property
    def external_message_id(self) -> Optional[str]:
        mid = self.message.get("mid")
        return str(mid) if mid else None


class OutboundSendResult(BaseModel):
    """Result of one send call against a platform API."""

    success: bool
    platform_message_id: Optional[str] = None


class DeliveryResult(BaseModel):
    """Outcome of delivery after retries. ``delivered=False`` never raises."""

    delivered: bool
    platform_message_id: Optional[str] = None
    error: Optional[str] = None


class AIReply(BaseModel):
    """Parsed AI backend reply."""

    traces: list[dict[str, Any]] = Field(default_factory=list)
    message: dict[str, Any] = Field(default_factory=dict)
    context_updates: dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.message.get("text") or ""

    @property
    def is_empty(self) -> bool:
        return not self.message.get("text") and not self.message.get("quick_replies")


class ProcessingResult(BaseModel):
    """Per-message pipeline result."""

    outcome: ProcessingOutcome
    queue_id: Optional[UUID] = None
    message_id: Optional[UUID] = None
    session_id: Optional[UUID] = None
    warning: Optional[str] = None
    error: Optional[str] = None
    transient: bool = False

    @property
    def success(self) -> bool:
        return self.outcome != ProcessingOutcome.FAILED
