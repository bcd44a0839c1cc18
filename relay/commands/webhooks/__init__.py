"""Webhook command handlers."""

from relay.commands.webhooks.meta_webhook_command import MetaWebhookCommand
from relay.commands.webhooks.verify_webhook_command import VerifyWebhookCommand

__all__ = ["MetaWebhookCommand", "VerifyWebhookCommand"]
