"""Dead-letter records for messages the AI backend never answered."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from relay.models.dead_letter import DeadLetterRecord


class DeadLetterService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def record(
        self,
        tenant_id: str,
        message_text: Optional[str],
        failure_reason: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> DeadLetterRecord:
        record = DeadLetterRecord(
            tenant_id=tenant_id,
            message_text=message_text,
            failure_reason=failure_reason,
            context=dict(context or {}),
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def get_dead_letters(
        self,
        tenant_id: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[DeadLetterRecord]:
        """Newest first, optionally for one tenant."""
        q = self.db.query(DeadLetterRecord).order_by(DeadLetterRecord.created_at.desc())
        if tenant_id is not None:
            q = q.filter(DeadLetterRecord.tenant_id == tenant_id)
        return q.offset(skip).limit(limit).all()
