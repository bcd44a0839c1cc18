"""Status values persisted by the pipeline."""

from enum import StrEnum


class QueueStatus(StrEnum):
    """Lifecycle of a queued inbound message."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SenderType(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class ProcessingOutcome(StrEnum):
    """Result of processing one queued message."""

    DELIVERED = "delivered"
    ACCEPTED_UNDELIVERED = "accepted_undelivered"
    FAILED = "failed"
