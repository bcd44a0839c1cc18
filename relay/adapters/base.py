"""
Platform adapter interface.

Adapters encapsulate channel-specific logic: turning webhook payloads into
InboundEvent and posting replies to the channel's send API.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Mapping

import requests

from relay.schemas.relay import Channel, InboundEvent, OutboundSendResult

logger = logging.getLogger(__name__)

SEND_TIMEOUT_SECONDS = 10
MESSAGING_TYPE_RESPONSE = "RESPONSE"

# Below this an epoch value is in seconds, not milliseconds
_MILLIS_THRESHOLD = 10**12


def to_epoch_millis(value: Any) -> int:
    """Normalize a platform timestamp (seconds or milliseconds, int or str) to ms."""
    try:
        ts = int(float(value))
    except (TypeError, ValueError):
        return int(time.time() * 1000)
    if ts <= 0:
        return int(time.time() * 1000)
    return ts if ts >= _MILLIS_THRESHOLD else ts * 1000


def extract_text(message: Mapping[str, Any]) -> str:
    """Text sent to the AI backend for a raw platform message."""
    if not message:
        return ""
    text = message.get("text")
    if text:
        return str(text)
    quick_reply = message.get("quick_reply")
    if isinstance(quick_reply, dict) and quick_reply.get("payload"):
        return str(quick_reply["payload"])
    postback = message.get("postback")
    if isinstance(postback, dict):
        return str(postback.get("payload") or postback.get("title") or "")
    attachments = message.get("attachments")
    if isinstance(attachments, list) and attachments:
        kinds = [
            str(a.get("type") or "attachment")
            for a in attachments
            if isinstance(a, dict)
        ]
        return " ".join(f"[{kind}]" for kind in kinds)
    return ""


class BasePlatformAdapter(ABC):
    """Contract for channel adapters. New channels implement this interface."""

    channel: Channel

    def __init__(self, graph_api_base: str) -> None:
        self._graph_api_base = graph_api_base.rstrip("/")

    @abstractmethod
    def parse_webhook(
        self, tenant_id: str, raw_payload: Mapping[str, Any]
    ) -> list[InboundEvent]:
        """Normalize a webhook payload. Unknown event shapes are dropped, never raised."""
        ...

    @abstractmethod
    def send_url(self, account_id: str) -> str:
        """Send endpoint for the connected channel account."""
        ...

    def build_send_body(
        self, recipient_id: str, message: Mapping[str, Any]
    ) -> dict[str, Any]:
        return {
            "recipient": {"id": recipient_id},
            "message": dict(message),
            "messaging_type": MESSAGING_TYPE_RESPONSE,
        }

    def send(
        self,
        access_token: str,
        account_id: str,
        recipient_id: str,
        message: Mapping[str, Any],
    ) -> OutboundSendResult:
        """POST one reply. Raises requests errors so the caller can retry."""
        resp = requests.post(
            self.send_url(account_id),
            json=self.build_send_body(recipient_id, message),
            params={"access_token": access_token},
            timeout=SEND_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError:
            data = {}
        platform_message_id = data.get("message_id") if isinstance(data, dict) else None
        return OutboundSendResult(
            success=True,
            platform_message_id=str(platform_message_id) if platform_message_id else None,
        )
