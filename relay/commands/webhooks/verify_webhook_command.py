"""Command answering the platform's webhook subscription handshake."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from fastapi import HTTPException
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from relay.core.retry import DATA_STORE_POLICY, run_with_retry
from relay.services.webhook_config_service import WebhookConfigService

SUBSCRIBE_MODE = "subscribe"

logger = logging.getLogger(__name__)


class VerifyWebhookCommand:
    def __init__(
        self, db: Session, sleep: Callable[[float], None] = time.sleep
    ) -> None:
        self.db = db
        self._sleep = sleep
        self.webhook_config_service = WebhookConfigService(db)

    def execute(
        self,
        tenant_id: Optional[str],
        channel: Optional[str],
        mode: Optional[str],
        token: Optional[str],
        challenge: Optional[str],
    ) -> PlainTextResponse:
        """
        Echo ``challenge`` when ``token`` matches an active webhook config.

        Raises:
            HTTPException: 400 on a bad mode or missing token, 401 when no
                config matches, 500 when the lookup keeps failing.
        """
        if mode != SUBSCRIBE_MODE:
            raise HTTPException(status_code=400, detail="Invalid hub.mode")
        if not token:
            raise HTTPException(status_code=400, detail="Missing hub.verify_token")

        def lookup():
            try:
                return self.webhook_config_service.find_active_config(
                    token, tenant_id=tenant_id, channel=channel
                )
            except Exception:
                self.db.rollback()
                raise

        try:
            config = run_with_retry(lookup, DATA_STORE_POLICY, sleep=self._sleep)
        except Exception as e:
            logger.error("Webhook verification lookup failed: %s", e)
            raise HTTPException(
                status_code=500, detail="Error verifying webhook"
            ) from e

        if config is None:
            logger.warning(
                "Webhook verification failed for tenant=%s channel=%s",
                tenant_id,
                channel,
            )
            raise HTTPException(status_code=401, detail="Verification token mismatch")

        logger.info(
            "Webhook verified for tenant=%s channel=%s", config.tenant_id, config.channel
        )
        return PlainTextResponse(content=challenge or "", status_code=200)
