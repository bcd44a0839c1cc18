"""
Webhook routes for Facebook Page and Instagram messaging.

Meta POSTs deliveries to ``/api/webhooks/{tenant_id}/{channel}`` and performs
the subscription handshake with a GET on the same path (or on the bare
``/api/webhooks`` when no tenant is configured in the callback URL).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from relay.commands.webhooks import MetaWebhookCommand, VerifyWebhookCommand
from relay.db import get_db

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/{tenant_id}/{channel}")
@router.post("/{tenant_id}/{channel}/{suffix:path}")
async def meta_webhook(
    request: Request,
    tenant_id: str,
    channel: str,
    suffix: Optional[str] = None,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Receive a webhook delivery, queue its events and return 200."""
    command = MetaWebhookCommand(db)
    return await command.execute(request, tenant_id, channel)


@router.get("", response_class=PlainTextResponse)
@router.get("/{tenant_id}/{channel}", response_class=PlainTextResponse)
@router.get("/{tenant_id}/{channel}/{suffix:path}", response_class=PlainTextResponse)
def verify_webhook(
    tenant_id: Optional[str] = None,
    channel: Optional[str] = None,
    suffix: Optional[str] = None,
    hub_mode: Optional[str] = Query(default=None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    db: Session = Depends(get_db),
) -> PlainTextResponse:
    """Echo ``hub.challenge`` when ``hub.verify_token`` matches a configured token."""
    command = VerifyWebhookCommand(db)
    return command.execute(
        tenant_id=tenant_id,
        channel=channel,
        mode=hub_mode,
        token=hub_verify_token,
        challenge=hub_challenge,
    )
