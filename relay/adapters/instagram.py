"""Instagram Direct adapter."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from relay.adapters.base import BasePlatformAdapter, to_epoch_millis
from relay.schemas.relay import Channel, EventKind, InboundEvent

logger = logging.getLogger(__name__)

MESSAGES_FIELD = "messages"


class InstagramAdapter(BasePlatformAdapter):
    """Reads ``entry[].changes[]`` with field ``messages``; replies via ``/{ig_id}/messages``."""

    channel = Channel.INSTAGRAM

    def send_url(self, account_id: str) -> str:
        return f"{self._graph_api_base}/{account_id}/messages"

    def parse_webhook(
        self, tenant_id: str, raw_payload: Mapping[str, Any]
    ) -> list[InboundEvent]:
        events: list[InboundEvent] = []
        for entry in raw_payload.get("entry") or []:
            if not isinstance(entry, dict):
                continue
            for change in entry.get("changes") or []:
                if not isinstance(change, dict) or change.get("field") != MESSAGES_FIELD:
                    continue
                event = self._parse_change_value(tenant_id, change.get("value") or {})
                if event is not None:
                    events.append(event)
        return events

    def _parse_change_value(
        self, tenant_id: str, value: Mapping[str, Any]
    ) -> InboundEvent | None:
        sender_id = (value.get("sender") or {}).get("id")
        recipient_id = (value.get("recipient") or {}).get("id")
        message = value.get("message")
        if not sender_id or not recipient_id or not isinstance(message, dict):
            logger.debug("Dropping instagram change without sender/recipient/message")
            return None
        if message.get("is_echo"):
            return None
        return InboundEvent(
            tenant_id=tenant_id,
            channel=self.channel,
            kind=EventKind.MESSAGE,
            sender_id=str(sender_id),
            recipient_id=str(recipient_id),
            message=message,
            timestamp=to_epoch_millis(value.get("timestamp")),
        )
