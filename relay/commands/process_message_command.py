"""
Command that takes one claimed queue entry through the relay pipeline.

Steps run strictly in sequence, each data-store call with its own retry budget:
connection lookup, session, conversation, user message, agent lookup, AI call,
context update, assistant message, outbound delivery.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.orm import Session

from relay.adapters.base import extract_text
from relay.adapters.registry import AdapterRegistry, build_adapter_registry
from relay.adapters.voiceflow import VoiceflowClient
from relay.commands.outbound.send_outbound_command import SendOutboundCommand
from relay.constants.statuses import ProcessingOutcome, SenderType
from relay.core.errors import AIRelayError
from relay.core.retry import (
    DATA_STORE_POLICY,
    DATA_STORE_WRITE_POLICY,
    RetryPolicy,
    is_transient_error,
    run_with_retry,
)
from relay.models.queued_message import QueuedMessage
from relay.schemas.relay import ProcessingResult
from relay.services.agent_config_service import AgentConfigService
from relay.services.channel_connection_service import ChannelConnectionService
from relay.services.conversation_service import ConversationService
from relay.services.dead_letter_service import DeadLetterService
from relay.services.session_manager import SessionManager
from relay.utils.time import from_epoch_millis

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNDELIVERED_WARNING = "Message processed but failed to deliver to user"
EMPTY_REPLY_WARNING = "AI backend returned no reply"


class ProcessMessageCommand:
    def __init__(
        self,
        db: Session,
        registry: Optional[AdapterRegistry] = None,
        ai_client: Optional[VoiceflowClient] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db = db
        self._sleep = sleep
        self.session_manager = SessionManager(db)
        self.conversation_service = ConversationService(db)
        self.connection_service = ChannelConnectionService(db)
        self.agent_service = AgentConfigService(db)
        self.ai_client = ai_client or VoiceflowClient(DeadLetterService(db), sleep=sleep)
        self.send_outbound = SendOutboundCommand(
            db, registry=registry or build_adapter_registry(), sleep=sleep
        )

    def execute(self, queued: QueuedMessage) -> ProcessingResult:
        """
        Process one queued message. Never raises; the outcome says what happened.

        Returns:
            ProcessingResult: ``delivered``, ``accepted_undelivered`` (reply saved
                but not confirmed sent) or ``failed`` (with ``transient`` set when
                a retry of the whole message may succeed).
        """
        try:
            return self._process(queued)
        except AIRelayError as e:
            return ProcessingResult(
                outcome=ProcessingOutcome.FAILED,
                queue_id=queued.id,
                error=e.message,
            )
        except Exception as e:
            self.db.rollback()
            transient = is_transient_error(e)
            logger.error(
                "Failed to process queued message %s: %s",
                queued.id,
                e,
                extra={
                    "context": {
                        "tenant_id": queued.tenant_id,
                        "channel": queued.channel,
                        "transient": transient,
                    }
                },
            )
            return ProcessingResult(
                outcome=ProcessingOutcome.FAILED,
                queue_id=queued.id,
                error=str(e) or e.__class__.__name__,
                transient=transient,
            )

    def _process(self, queued: QueuedMessage) -> ProcessingResult:
        tenant_id = queued.tenant_id
        channel = queued.channel
        sender_id = queued.sender_id
        message = queued.message or {}
        sent_at = from_epoch_millis(queued.event_timestamp)

        connection = self._store(
            lambda: self.connection_service.require_active_connection(
                tenant_id, channel, queued.recipient_id
            )
        )
        session = self._store(
            lambda: self.session_manager.get_or_create_session(
                tenant_id, sender_id, channel
            )
        )
        conversation = self._store(
            lambda: self.conversation_service.get_or_create_conversation(
                tenant_id, channel, sender_id, session.id, queued.event_timestamp
            )
        )
        self._store(
            lambda: self.session_manager.link_session_to_conversation(
                conversation.id, session.id
            )
        )

        text = extract_text(message)
        user_message = self._store(
            lambda: self.conversation_service.record_message(
                conversation.id,
                SenderType.USER,
                text,
                external_id=message.get("mid"),
                sent_at=sent_at,
            ),
            DATA_STORE_WRITE_POLICY,
        )
        self._store(
            lambda: self.session_manager.update_session_context(
                session.id, {"lastUserMessage": text}
            )
        )

        agent = self._store(
            lambda: self.agent_service.require_agent_config(tenant_id),
            DATA_STORE_WRITE_POLICY,
        )
        api_key = self.agent_service.resolve_api_key(agent)

        base_context = {
            "messageId": str(user_message.id),
            "participantId": sender_id,
            "platform": channel,
            "conversationId": str(conversation.id),
            "timestamp": sent_at.isoformat(),
        }
        ai_context = self._store(
            lambda: self.session_manager.prepare_ai_context(session.id, base_context)
        )
        snapshot = {
            "tenantId": tenant_id,
            "platform": channel,
            "conversationId": str(conversation.id),
            "messageId": str(user_message.id),
            "timestamp": queued.event_timestamp,
            "sessionId": str(session.id),
        }
        reply = self.ai_client.interact(
            tenant_id=tenant_id,
            api_key=api_key,
            text=text,
            context=ai_context,
            snapshot=snapshot,
            version_id=agent.version_id,
            runtime_url=agent.runtime_url,
        )

        if reply.context_updates:
            self._store(
                lambda: self.session_manager.update_session_context(
                    session.id, reply.context_updates
                )
            )
        self._store(lambda: self.session_manager.extend_session(session.id))

        if reply.is_empty:
            logger.warning(
                "AI backend returned no reply for queued message %s", queued.id
            )
            return ProcessingResult(
                outcome=ProcessingOutcome.ACCEPTED_UNDELIVERED,
                queue_id=queued.id,
                session_id=session.id,
                warning=EMPTY_REPLY_WARNING,
            )

        assistant_message = self._store(
            lambda: self.conversation_service.record_message(
                conversation.id, SenderType.ASSISTANT, reply.text
            ),
            DATA_STORE_WRITE_POLICY,
        )
        self._store(
            lambda: self.session_manager.update_session_context(
                session.id, {"lastAssistantMessage": reply.text}
            )
        )

        delivery = self.send_outbound.execute(connection, sender_id, reply.message)
        if not delivery.delivered:
            return ProcessingResult(
                outcome=ProcessingOutcome.ACCEPTED_UNDELIVERED,
                queue_id=queued.id,
                message_id=assistant_message.id,
                session_id=session.id,
                warning=UNDELIVERED_WARNING,
                error=delivery.error,
            )
        return ProcessingResult(
            outcome=ProcessingOutcome.DELIVERED,
            queue_id=queued.id,
            message_id=assistant_message.id,
            session_id=session.id,
        )

    def _store(
        self, operation: Callable[[], T], policy: RetryPolicy = DATA_STORE_POLICY
    ) -> T:
        """Run a data-store call with its own retry budget, rolling back between attempts."""

        def attempt() -> T:
            try:
                return operation()
            except Exception:
                self.db.rollback()
                raise

        return run_with_retry(attempt, policy, sleep=self._sleep)
