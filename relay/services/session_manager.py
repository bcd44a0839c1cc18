"""SessionManager: facade over sessions for the relay pipeline.

Owns every read and write of a session's context bag. Context merges are
shallow (one level of keys) and last-writer-wins, matching the AI backend's
flat variable model.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session as DBSession

from relay.config import get_settings
from relay.core.errors import PermanentError
from relay.models.conversation import Conversation
from relay.models.session import Session
from relay.services.session_service import SessionService
from relay.utils.time import utcnow

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(self, db: DBSession, ttl_minutes: Optional[int] = None) -> None:
        self._db = db
        self._session_svc = SessionService(db)
        minutes = ttl_minutes or get_settings().session_ttl_minutes
        self._ttl = timedelta(minutes=minutes)

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def get_or_create_session(
        self, tenant_id: str, contact_id: str, channel: str
    ) -> Session:
        session = self._session_svc.get_live_session(tenant_id, contact_id, channel)
        if session is not None:
            return session
        session = self._session_svc.create_session(
            tenant_id, contact_id, channel, ttl=self._ttl
        )
        logger.info(
            "Created session %s for %s contact %s (tenant %s)",
            session.id,
            channel,
            contact_id,
            tenant_id,
        )
        return session

    def get_session_context(self, session_id: UUID) -> Dict[str, Any]:
        return dict(self._require(session_id).context or {})

    def update_session_context(
        self, session_id: UUID, partial_context: Dict[str, Any]
    ) -> Session:
        session = self._require(session_id)
        merged = {**(session.context or {}), **partial_context}
        return self._session_svc.replace_context(session, merged)

    def extend_session(self, session_id: UUID) -> Session:
        session = self._require(session_id)
        return self._session_svc.set_expiry(session, utcnow() + self._ttl)

    def link_session_to_conversation(
        self, conversation_id: UUID, session_id: UUID
    ) -> None:
        conversation = (
            self._db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .first()
        )
        if conversation is None:
            raise PermanentError(f"Conversation {conversation_id} not found")
        if conversation.session_id == session_id:
            return
        conversation.session_id = session_id
        self._db.commit()

    def prepare_ai_context(
        self, session_id: UUID, base_context: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Session variables overlaid with per-message metadata."""
        return {**self.get_session_context(session_id), **base_context}

    def _require(self, session_id: UUID) -> Session:
        session = self._session_svc.get_session(session_id)
        if session is None:
            raise PermanentError(f"Session {session_id} not found")
        return session
