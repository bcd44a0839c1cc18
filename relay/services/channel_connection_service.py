"""Read-only access to per-tenant channel delivery credentials."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from relay.core.credentials import decrypt_secret
from relay.core.errors import ConfigurationError
from relay.models.channel_connection import ChannelConnection
from relay.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


class ChannelConnectionService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_active_connection(
        self, tenant_id: str, channel: str, account_id: str
    ) -> Optional[ChannelConnection]:
        return (
            self.db.query(ChannelConnection)
            .filter(
                ChannelConnection.tenant_id == tenant_id,
                ChannelConnection.channel == channel,
                ChannelConnection.account_id == account_id,
                ChannelConnection.is_active.is_(True),
            )
            .first()
        )

    def require_active_connection(
        self, tenant_id: str, channel: str, account_id: str
    ) -> ChannelConnection:
        connection = self.get_active_connection(tenant_id, channel, account_id)
        if connection is None:
            raise ConfigurationError(
                f"No {channel} connection found for tenant {tenant_id}, account {account_id}"
            )
        if connection.expires_at is not None and as_utc(connection.expires_at) <= utcnow():
            logger.warning(
                "Access token for %s connection %s (tenant %s) has expired",
                channel,
                connection.id,
                tenant_id,
            )
        return connection

    def get_access_token(self, connection: ChannelConnection) -> str:
        token = decrypt_secret(connection.encrypted_access_token)
        if not token:
            raise ConfigurationError(f"Connection {connection.id} has no access token")
        return token
