"""Lookup of webhook verification tokens."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from relay.models.webhook_config import WebhookConfig


class WebhookConfigService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_active_config(
        self,
        token: str,
        tenant_id: Optional[str] = None,
        channel: Optional[str] = None,
    ) -> Optional[WebhookConfig]:
        """Active config with this token, narrowed by tenant and channel when given."""
        q = self.db.query(WebhookConfig).filter(
            WebhookConfig.verification_token == token,
            WebhookConfig.is_active.is_(True),
        )
        if tenant_id:
            q = q.filter(WebhookConfig.tenant_id == tenant_id)
        if channel:
            q = q.filter(WebhookConfig.channel == channel)
        return q.first()
