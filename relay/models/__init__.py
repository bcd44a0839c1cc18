from relay.models.agent_config import AgentConfig
from relay.models.channel_connection import ChannelConnection
from relay.models.conversation import Conversation, Message
from relay.models.dead_letter import DeadLetterRecord
from relay.models.queued_message import QueuedMessage
from relay.models.session import Session
from relay.models.webhook_config import WebhookConfig

__all__ = [
    "AgentConfig",
    "ChannelConnection",
    "Conversation",
    "DeadLetterRecord",
    "Message",
    "QueuedMessage",
    "Session",
    "WebhookConfig",
]
