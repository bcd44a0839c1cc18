"""
Command to deliver an AI reply back through the originating channel.

Resolves the adapter by channel, decrypts the connection's access token and
posts through the retry executor. Delivery failure is reported in the result,
never raised: the reply is already recorded and only its delivery is unconfirmed.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.orm import Session

from relay.adapters.registry import AdapterRegistry, build_adapter_registry
from relay.core.errors import ConfigurationError
from relay.core.retry import OUTBOUND_POLICY, RetryPolicy, run_with_retry
from relay.models.channel_connection import ChannelConnection
from relay.schemas.relay import DeliveryResult
from relay.services.channel_connection_service import ChannelConnectionService

logger = logging.getLogger(__name__)


class SendOutboundCommand:
    def __init__(
        self,
        db: Session,
        registry: Optional[AdapterRegistry] = None,
        policy: RetryPolicy = OUTBOUND_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self._adapters = registry or build_adapter_registry()
        self._policy = policy
        self._sleep = sleep
        self.connection_service = ChannelConnectionService(db)

    def execute(
        self,
        connection: ChannelConnection,
        recipient_id: str,
        message: Mapping[str, Any],
    ) -> DeliveryResult:
        """
        Send ``message`` to ``recipient_id`` using ``connection``'s credential.

        Returns:
            DeliveryResult: delivered=True with the platform message id, or
                delivered=False with the last error after retries.
        """
        adapter = self._adapters.get(connection.channel)
        if adapter is None:
            return DeliveryResult(
                delivered=False,
                error=f"Channel {connection.channel} is not supported",
            )
        try:
            access_token = self.connection_service.get_access_token(connection)
        except ConfigurationError as e:
            logger.error("Cannot deliver on connection %s: %s", connection.id, e)
            return DeliveryResult(delivered=False, error=str(e))

        try:
            result = run_with_retry(
                lambda: adapter.send(
                    access_token, connection.account_id, recipient_id, message
                ),
                self._policy,
                sleep=self._sleep,
            )
        except Exception as e:
            logger.error(
                "Failed to send %s reply to %s after retries: %s",
                connection.channel,
                recipient_id,
                e,
            )
            return DeliveryResult(delivered=False, error=str(e) or e.__class__.__name__)

        return DeliveryResult(
            delivered=True, platform_message_id=result.platform_message_id
        )
