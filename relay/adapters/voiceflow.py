"""
Client for the conversational-AI backend (Voiceflow general runtime).

Each tenant has its own interaction endpoint. Calls go through the retry
executor; when the budget is spent the message is written to the dead-letter
store and AIRelayError is raised so the caller stops before any send.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional

import requests

from relay.config import get_settings
from relay.core.context_markers import extract_context_updates, strip_markers
from relay.core.errors import AIRelayError, PermanentError
from relay.core.retry import (
    AI_BACKEND_POLICY,
    DATA_STORE_WRITE_POLICY,
    RetryPolicy,
    run_with_retry,
)
from relay.schemas.relay import AIReply
from relay.services.dead_letter_service import DeadLetterService

logger = logging.getLogger(__name__)

INTERACT_PATH = "/state/user/{user_id}/interact"
TIMEOUT_SECONDS = 15

MAX_QUICK_REPLIES = 13
QUICK_REPLY_TITLE_MAX = 20
CHOICE_PROMPT = "Please choose an option:"


def build_interact_request(text: str, context: Mapping[str, Any]) -> dict[str, Any]:
    """Request body: the contact's text plus the flattened session variables."""
    return {
        "action": {"type": "text", "payload": text},
        "config": {"tts": False, "stripSSML": True},
        "state": {"variables": dict(context)},
    }


def _quick_replies(trace: Mapping[str, Any]) -> list[dict[str, str]]:
    replies: list[dict[str, str]] = []
    payload = trace.get("payload") or {}
    for button in payload.get("buttons") or []:
        if not isinstance(button, dict):
            continue
        title = str(button.get("name") or "").strip()
        if not title:
            continue
        request = button.get("request") or {}
        reply_payload = request.get("payload")
        if isinstance(reply_payload, dict):
            reply_payload = reply_payload.get("label") or title
        replies.append(
            {
                "content_type": "text",
                "title": title[:QUICK_REPLY_TITLE_MAX],
                "payload": str(reply_payload or request.get("type") or title),
            }
        )
    return replies


def format_reply(traces: Any) -> dict[str, Any]:
    """Platform message object built from text and choice traces."""
    if not isinstance(traces, list):
        return {}
    texts: list[str] = []
    quick_replies: list[dict[str, str]] = []
    for trace in traces:
        if not isinstance(trace, dict):
            continue
        payload = trace.get("payload")
        if trace.get("type") == "text" and isinstance(payload, dict):
            text = strip_markers(str(payload.get("message") or ""))
            if text:
                texts.append(text)
        elif trace.get("type") == "choice":
            quick_replies.extend(_quick_replies(trace))

    message: dict[str, Any] = {}
    if texts:
        message["text"] = "\n\n".join(texts)
    if quick_replies:
        message.setdefault("text", CHOICE_PROMPT)
        message["quick_replies"] = quick_replies[:MAX_QUICK_REPLIES]
    return message


def parse_reply(traces: Any) -> AIReply:
    trace_list = [t for t in traces if isinstance(t, dict)] if isinstance(traces, list) else []
    return AIReply(
        traces=trace_list,
        message=format_reply(trace_list),
        context_updates=extract_context_updates(trace_list),
    )


class VoiceflowClient:
    def __init__(
        self,
        dead_letter_service: DeadLetterService,
        runtime_url: Optional[str] = None,
        policy: RetryPolicy = AI_BACKEND_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._dead_letters = dead_letter_service
        self._runtime_url = (runtime_url or get_settings().voiceflow_runtime_url).rstrip("/")
        self._policy = policy
        self._sleep = sleep

    def interact(
        self,
        tenant_id: str,
        api_key: str,
        text: str,
        context: Mapping[str, Any],
        snapshot: Mapping[str, Any],
        version_id: Optional[str] = None,
        runtime_url: Optional[str] = None,
    ) -> AIReply:
        """
        Send the contact's text to the tenant's agent and parse the reply.

        Args:
            tenant_id: Tenant whose interaction endpoint is called.
            api_key: Bearer key for the AI backend.
            text: Normalized message text.
            context: Flat variable bag (session context plus message metadata).
            snapshot: Saved with the dead letter if every attempt fails.

        Raises:
            AIRelayError: after retries are exhausted (dead letter already written).
        """
        base = (runtime_url or self._runtime_url).rstrip("/")
        url = base + INTERACT_PATH.format(user_id=tenant_id)
        body = build_interact_request(text, context)
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if version_id:
            headers["versionID"] = version_id

        def _call() -> Any:
            resp = requests.post(url, json=body, headers=headers, timeout=TIMEOUT_SECONDS)
            resp.raise_for_status()
            try:
                return resp.json()
            except ValueError as e:
                raise PermanentError("AI backend returned invalid JSON") from e

        try:
            traces = run_with_retry(_call, self._policy, sleep=self._sleep)
        except Exception as e:
            logger.error(
                "AI backend call failed for tenant %s after retries: %s", tenant_id, e
            )
            self._record_dead_letter(
                tenant_id, text, str(e) or e.__class__.__name__, snapshot
            )
            raise AIRelayError(
                "Failed to process message with AI assistant after multiple attempts",
                details={"reason": str(e)},
            ) from e

        return parse_reply(traces)

    def _record_dead_letter(
        self,
        tenant_id: str,
        text: str,
        reason: str,
        snapshot: Mapping[str, Any],
    ) -> None:
        """Write the dead letter with its own retry budget; a final failure is only logged."""
        db = self._dead_letters.db

        def attempt() -> None:
            try:
                self._dead_letters.record(
                    tenant_id=tenant_id,
                    message_text=text,
                    failure_reason=reason,
                    context=dict(snapshot),
                )
            except Exception:
                db.rollback()
                raise

        try:
            run_with_retry(attempt, DATA_STORE_WRITE_POLICY, sleep=self._sleep)
        except Exception as e:
            logger.error("Could not write dead letter for tenant %s: %s", tenant_id, e)
