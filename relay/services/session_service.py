"""Session CRUD and live-session lookup by (tenant, contact, channel)."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session as DBSession

from relay.models.session import Session
from relay.utils.time import utcnow


class SessionService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_session(self, session_id: UUID) -> Optional[Session]:
        return self.db.query(Session).filter(Session.id == session_id).first()

    def get_live_session(
        self,
        tenant_id: str,
        contact_id: str,
        channel: str,
        now: Optional[datetime] = None,
    ) -> Optional[Session]:
        """Most recent session for the key that has not expired yet."""
        now = now or utcnow()
        return (
            self.db.query(Session)
            .filter(
                Session.tenant_id == tenant_id,
                Session.contact_id == contact_id,
                Session.channel == channel,
                Session.expires_at > now,
            )
            .order_by(Session.expires_at.desc())
            .first()
        )

    def create_session(
        self,
        tenant_id: str,
        contact_id: str,
        channel: str,
        ttl: timedelta,
        context: Optional[Dict[str, Any]] = None,
    ) -> Session:
        now = utcnow()
        session = Session(
            tenant_id=tenant_id,
            contact_id=contact_id,
            channel=channel,
            context=dict(context or {}),
            created_at=now,
            last_extended_at=now,
            expires_at=now + ttl,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def replace_context(self, session: Session, context: Dict[str, Any]) -> Session:
        # Assign a new dict so the JSON column is flagged dirty
        session.context = dict(context)
        self.db.commit()
        self.db.refresh(session)
        return session

    def set_expiry(self, session: Session, expires_at: datetime) -> Session:
        session.expires_at = expires_at
        session.last_extended_at = utcnow()
        self.db.commit()
        self.db.refresh(session)
        return session
