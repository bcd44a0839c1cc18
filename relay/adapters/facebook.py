"""Facebook Page Messaging adapter."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from relay.adapters.base import BasePlatformAdapter, to_epoch_millis
from relay.schemas.relay import Channel, EventKind, InboundEvent

logger = logging.getLogger(__name__)


class FacebookAdapter(BasePlatformAdapter):
    """Reads ``entry[].messaging[]`` events; replies via ``/me/messages``."""

    channel = Channel.FACEBOOK

    def send_url(self, account_id: str) -> str:
        # The page access token identifies the page, so the path uses "me"
        return f"{self._graph_api_base}/me/messages"

    def parse_webhook(
        self, tenant_id: str, raw_payload: Mapping[str, Any]
    ) -> list[InboundEvent]:
        events: list[InboundEvent] = []
        for entry in raw_payload.get("entry") or []:
            if not isinstance(entry, dict):
                continue
            for evt in entry.get("messaging") or []:
                if not isinstance(evt, dict):
                    continue
                event = self._parse_messaging_event(tenant_id, evt)
                if event is not None:
                    events.append(event)
        return events

    def _parse_messaging_event(
        self, tenant_id: str, evt: Mapping[str, Any]
    ) -> InboundEvent | None:
        sender_id = (evt.get("sender") or {}).get("id")
        recipient_id = (evt.get("recipient") or {}).get("id")
        if not sender_id or not recipient_id:
            logger.debug("Dropping messaging event without sender/recipient")
            return None
        timestamp = to_epoch_millis(evt.get("timestamp"))

        message = evt.get("message")
        if isinstance(message, dict):
            if message.get("is_echo"):
                return None
            return InboundEvent(
                tenant_id=tenant_id,
                channel=self.channel,
                kind=EventKind.MESSAGE,
                sender_id=str(sender_id),
                recipient_id=str(recipient_id),
                message=message,
                timestamp=timestamp,
            )

        postback = evt.get("postback")
        if isinstance(postback, dict):
            return InboundEvent(
                tenant_id=tenant_id,
                channel=self.channel,
                kind=EventKind.POSTBACK,
                sender_id=str(sender_id),
                recipient_id=str(recipient_id),
                message={
                    "mid": postback.get("mid")
                    or f"postback-{sender_id}-{timestamp}",
                    "postback": postback,
                },
                timestamp=timestamp,
                postback=postback,
            )

        logger.debug("Dropping unsupported messaging event: %s", sorted(evt.keys()))
        return None
