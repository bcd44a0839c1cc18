"""
Error taxonomy for the relay pipeline.

Transient errors are retried by the retry executor; permanent errors fail the
current message immediately; signature errors are rejected at the HTTP boundary.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for relay errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }


class TransientError(RelayError):
    """Likely to succeed on retry (timeouts, network errors, 5xx)."""


class PermanentError(RelayError):
    """Will fail again if retried (4xx, validation, bad data)."""


class ConfigurationError(PermanentError):
    """Missing tenant configuration, e.g. no AI agent or no channel connection."""


class PayloadError(PermanentError):
    """Webhook payload could not be interpreted."""


class SignatureError(RelayError):
    """Webhook signature or verification token mismatch."""


class AIRelayError(RelayError):
    """AI backend call failed after exhausting retries; already dead-lettered."""
