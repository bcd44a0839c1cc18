"""Tests for the AI backend client and reply formatting."""

from unittest.mock import MagicMock, patch

import pytest
import requests
from sqlalchemy.exc import OperationalError

from relay.adapters.voiceflow import (
    CHOICE_PROMPT,
    VoiceflowClient,
    build_interact_request,
    format_reply,
    parse_reply,
)
from relay.core.errors import AIRelayError
from relay.models.dead_letter import DeadLetterRecord
from relay.services.dead_letter_service import DeadLetterService

RUNTIME = "https://runtime.example.com"


@pytest.fixture
def client(db):
    return VoiceflowClient(DeadLetterService(db), runtime_url=RUNTIME, sleep=lambda _: None)


def ok_response(traces):
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = traces
    return response


def test_build_interact_request():
    body = build_interact_request("Hello", {"participantId": "S1"})
    assert body == {
        "action": {"type": "text", "payload": "Hello"},
        "config": {"tts": False, "stripSSML": True},
        "state": {"variables": {"participantId": "S1"}},
    }


def test_format_reply_joins_text_and_strips_markers():
    traces = [
        {"type": "text", "payload": {"message": "Hi! [[SET:greeted=yes]]"}},
        {"type": "text", "payload": {"message": "How can I help?"}},
        {"type": "debug", "payload": {"message": "ignored"}},
    ]
    assert format_reply(traces) == {"text": "Hi!\n\nHow can I help?"}


def test_format_reply_turns_choices_into_quick_replies():
    traces = [
        {
            "type": "choice",
            "payload": {
                "buttons": [
                    {"name": "Pricing", "request": {"type": "path-1", "payload": {"label": "Pricing"}}},
                    {"name": "A very long button title here", "request": {"type": "path-2"}},
                    {"name": ""},
                ]
            },
        }
    ]
    message = format_reply(traces)
    assert message["text"] == CHOICE_PROMPT
    assert message["quick_replies"] == [
        {"content_type": "text", "title": "Pricing", "payload": "Pricing"},
        {"content_type": "text", "title": "A very long button t", "payload": "path-2"},
    ]


def test_parse_reply_collects_context_updates():
    reply = parse_reply(
        [
            {"type": "set-variables", "payload": {"plan": "pro"}},
            {"type": "text", "payload": {"message": "Done [[SET:step=2]]"}},
        ]
    )
    assert reply.text == "Done"
    assert reply.context_updates == {"plan": "pro", "step": "2"}
    assert reply.is_empty is False


def test_parse_reply_of_non_list_is_empty():
    assert parse_reply({"error": "nope"}).is_empty is True


@patch("relay.adapters.voiceflow.requests.post")
def test_interact_posts_to_tenant_endpoint(mock_post, client):
    mock_post.return_value = ok_response([{"type": "text", "payload": {"message": "Hi"}}])

    reply = client.interact(
        tenant_id="T1",
        api_key="vf-key",
        text="Hello",
        context={"participantId": "S1", "platform": "facebook"},
        snapshot={},
        version_id="production",
    )

    assert reply.text == "Hi"
    mock_post.assert_called_once()
    args, kwargs = mock_post.call_args
    assert args[0] == f"{RUNTIME}/state/user/T1/interact"
    assert kwargs["headers"]["Authorization"] == "Bearer vf-key"
    assert kwargs["headers"]["versionID"] == "production"
    assert kwargs["json"]["action"]["payload"] == "Hello"
    assert kwargs["timeout"] == 15


@patch("relay.adapters.voiceflow.requests.post")
def test_interact_retries_timeouts(mock_post, client):
    mock_post.side_effect = [
        requests.Timeout("slow"),
        ok_response([{"type": "text", "payload": {"message": "Back"}}]),
    ]
    reply = client.interact("T1", "vf-key", "Hello", {}, {})
    assert reply.text == "Back"
    assert mock_post.call_count == 2


@patch("relay.adapters.voiceflow.requests.post")
def test_interact_dead_letters_after_three_timeouts(mock_post, client, db):
    mock_post.side_effect = requests.Timeout("slow")
    snapshot = {"platform": "facebook", "conversationId": "c1", "messageId": "m1"}

    with pytest.raises(AIRelayError):
        client.interact("T1", "vf-key", "Hello", {}, snapshot)

    assert mock_post.call_count == 3
    (record,) = db.query(DeadLetterRecord).all()
    assert record.tenant_id == "T1"
    assert record.message_text == "Hello"
    assert record.context == snapshot


@patch("relay.adapters.voiceflow.requests.post")
def test_interact_does_not_retry_unauthorized(mock_post, client, db):
    response = MagicMock(status_code=401)
    mock_post.return_value.raise_for_status.side_effect = requests.HTTPError(
        response=response
    )
    with pytest.raises(AIRelayError):
        client.interact("T1", "bad-key", "Hello", {}, {})
    assert mock_post.call_count == 1
    assert db.query(DeadLetterRecord).count() == 1


@patch("relay.adapters.voiceflow.requests.post")
def test_interact_retries_dead_letter_write(mock_post, client, db):
    mock_post.side_effect = requests.Timeout("slow")
    outage = OperationalError("INSERT INTO dead_letters", {}, Exception("connection reset"))
    record = client._dead_letters.record
    calls = []

    def flaky_record(**kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            raise outage
        return record(**kwargs)

    with patch.object(client._dead_letters, "record", side_effect=flaky_record):
        with pytest.raises(AIRelayError):
            client.interact("T1", "vf-key", "Hello", {}, {"platform": "facebook"})

    assert len(calls) == 2
    (dead_letter,) = db.query(DeadLetterRecord).all()
    assert dead_letter.context == {"platform": "facebook"}


@patch("relay.adapters.voiceflow.requests.post")
def test_interact_raises_relay_error_when_dead_letter_write_fails(mock_post, client, db):
    mock_post.side_effect = requests.Timeout("slow")
    outage = OperationalError("INSERT INTO dead_letters", {}, Exception("connection reset"))

    with patch.object(client._dead_letters, "record", side_effect=outage) as mock_record:
        with pytest.raises(AIRelayError):
            client.interact("T1", "vf-key", "Hello", {}, {})

    assert mock_record.call_count == 2
    assert db.query(DeadLetterRecord).count() == 0
