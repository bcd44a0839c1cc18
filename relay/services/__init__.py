from relay.services.agent_config_service import AgentConfigService
from relay.services.channel_connection_service import ChannelConnectionService
from relay.services.conversation_service import ConversationService
from relay.services.dead_letter_service import DeadLetterService
from relay.services.queue_service import DurableQueue
from relay.services.session_manager import SessionManager
from relay.services.session_service import SessionService
from relay.services.webhook_config_service import WebhookConfigService

__all__ = [
    "AgentConfigService",
    "ChannelConnectionService",
    "ConversationService",
    "DeadLetterService",
    "DurableQueue",
    "SessionManager",
    "SessionService",
    "WebhookConfigService",
]
