"""
Conversation threads and their append-only messages.

Conversations are unique per (tenant, channel, external contact). Concurrent
first-contact events for one contact may both try to insert; the loser hits
the unique constraint, rolls back and adopts the winner's row.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from relay.constants.statuses import SenderType
from relay.models.conversation import Conversation, Message
from relay.utils.time import from_epoch_millis, utcnow

logger = logging.getLogger(__name__)


class ConversationService:
    """Find-or-create conversations and record messages. Messages are never updated."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .first()
        )

    def get_conversation_by_key(
        self, tenant_id: str, channel: str, contact_id: str
    ) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.tenant_id == tenant_id,
                Conversation.channel == channel,
                Conversation.external_id == contact_id,
            )
            .first()
        )

    def get_or_create_conversation(
        self,
        tenant_id: str,
        channel: str,
        contact_id: str,
        session_id: Optional[UUID],
        timestamp: Optional[int],
    ) -> Conversation:
        """Return the contact's conversation, touching last_message_at and session id."""
        last_message_at = from_epoch_millis(timestamp)
        existing = self.get_conversation_by_key(tenant_id, channel, contact_id)
        if existing is not None:
            return self._touch(existing, session_id, last_message_at)

        conversation = Conversation(
            tenant_id=tenant_id,
            channel=channel,
            external_id=contact_id,
            participant_id=contact_id,
            participant_name=None,
            last_message_at=last_message_at,
            session_id=session_id,
        )
        self.db.add(conversation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            winner = self.get_conversation_by_key(tenant_id, channel, contact_id)
            if winner is None:
                raise
            logger.info(
                "Concurrent conversation create for %s contact %s; reusing %s",
                channel,
                contact_id,
                winner.id,
            )
            return self._touch(winner, session_id, last_message_at)
        self.db.refresh(conversation)
        return conversation

    def record_message(
        self,
        conversation_id: UUID,
        sender_type: SenderType | str,
        content: Optional[str],
        external_id: Optional[str] = None,
        sent_at: Optional[datetime] = None,
    ) -> Message:
        message = Message(
            conversation_id=conversation_id,
            sender_type=SenderType(sender_type).value,
            content=content,
            external_id=external_id,
            sent_at=sent_at or utcnow(),
        )
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        return message

    def get_messages(
        self, conversation_id: UUID, skip: int = 0, limit: int = 100
    ) -> List[Message]:
        return (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.sent_at.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def _touch(
        self,
        conversation: Conversation,
        session_id: Optional[UUID],
        last_message_at: datetime,
    ) -> Conversation:
        conversation.last_message_at = last_message_at
        if session_id is not None:
            conversation.session_id = session_id
        self.db.commit()
        self.db.refresh(conversation)
        return conversation
