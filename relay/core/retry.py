"""
Retry/backoff executor.

Every external call (data store, AI backend, outbound send) is wrapped on its
own with a RetryPolicy. Attempt ``n`` that fails with a retryable error sleeps
``min(initial_delay * n, max_delay)`` seconds before the next attempt.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import requests
from sqlalchemy.exc import DisconnectionError, OperationalError

from relay.core.errors import PermanentError, TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_HTTP_STATUSES = frozenset({408, 429})


def _status_code(error: BaseException) -> Optional[int]:
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(error, "status_code", None)
    return status if isinstance(status, int) else None


def is_transient_error(error: BaseException) -> bool:
    """Classify an error by shape: network/timeout/5xx are transient, the rest permanent."""
    if isinstance(error, TransientError):
        return True
    if isinstance(error, PermanentError):
        return False
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(error, (OperationalError, DisconnectionError)):
        return True
    if isinstance(error, (TimeoutError, ConnectionError)):
        return True
    status = _status_code(error)
    if status is not None:
        return status >= 500 or status in TRANSIENT_HTTP_STATUSES
    return False


def is_server_error(error: BaseException) -> bool:
    status = _status_code(error)
    return status is not None and status >= 500


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int
    initial_delay: float
    max_delay: Optional[float] = None
    should_retry: Optional[Callable[[BaseException], bool]] = None

    def delay_for(self, attempt: int) -> float:
        delay = self.initial_delay * attempt
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


# Budgets used across the pipeline (delays in seconds)
DATA_STORE_POLICY = RetryPolicy(max_retries=3, initial_delay=0.3)
DATA_STORE_WRITE_POLICY = RetryPolicy(max_retries=2, initial_delay=0.3)
AI_BACKEND_POLICY = RetryPolicy(
    max_retries=3,
    initial_delay=1.0,
    max_delay=5.0,
    should_retry=lambda e: is_transient_error(e) or is_server_error(e),
)
OUTBOUND_POLICY = RetryPolicy(max_retries=3, initial_delay=1.0)


def run_with_retry(
    operation: Callable[[], T],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Invoke ``operation`` up to ``policy.max_retries`` times.

    Non-retryable errors are raised on the first failure; the final error is
    raised once the budget is spent.
    """
    should_retry = policy.should_retry or is_transient_error
    attempts = max(1, policy.max_retries)
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except Exception as error:
            if attempt >= attempts or not should_retry(error):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Attempt %s/%s failed (%s); retrying in %.2fs",
                attempt,
                attempts,
                error,
                delay,
            )
            sleep(delay)
