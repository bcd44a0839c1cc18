"""Tests for SendOutboundCommand."""

from unittest.mock import patch

import pytest
import requests

from relay.commands.outbound.send_outbound_command import SendOutboundCommand
from relay.models.channel_connection import ChannelConnection
from tests.fixtures.relay_fixtures import PAGE_ACCESS_TOKEN
from tests.relay.commands.helpers import fake_post


@pytest.fixture
def delays():
    return []


@pytest.fixture
def command(db, delays):
    return SendOutboundCommand(db, sleep=delays.append)


def test_delivers_reply(command, setup_channel_connection):
    with patch("requests.post", side_effect=fake_post(message_id="mid.42")) as mock_post:
        result = command.execute(setup_channel_connection, "S1", {"text": "Hi"})

    assert result.delivered is True
    assert result.platform_message_id == "mid.42"
    assert mock_post.call_args.kwargs["params"] == {"access_token": PAGE_ACCESS_TOKEN}


def test_instagram_reply_uses_account_endpoint(command, setup_instagram_connection):
    with patch("requests.post", side_effect=fake_post()) as mock_post:
        result = command.execute(setup_instagram_connection, "IGS1", {"text": "Hi"})

    assert result.delivered is True
    assert mock_post.call_args.args[0] == "https://graph.facebook.com/v18.0/IG1/messages"


def test_retries_then_delivers(command, delays, setup_channel_connection):
    success = fake_post()
    with patch(
        "requests.post",
        side_effect=[requests.ConnectionError("reset"), success("https://x/me/messages")],
    ) as mock_post:
        result = command.execute(setup_channel_connection, "S1", {"text": "Hi"})

    assert result.delivered is True
    assert mock_post.call_count == 2
    assert delays == [1.0]


def test_gives_up_after_three_attempts(command, delays, setup_channel_connection):
    with patch(
        "requests.post", side_effect=fake_post(send_error=requests.Timeout("slow"))
    ) as mock_post:
        result = command.execute(setup_channel_connection, "S1", {"text": "Hi"})

    assert result.delivered is False
    assert "slow" in result.error
    assert mock_post.call_count == 3
    assert delays == [1.0, 2.0]


def test_unsupported_channel_is_not_sent(command, tenant_id):
    connection = ChannelConnection(
        tenant_id=tenant_id,
        channel="whatsapp",
        account_id="W1",
        encrypted_access_token=b"unused",
    )
    with patch("requests.post") as mock_post:
        result = command.execute(connection, "S1", {"text": "Hi"})
    assert result.delivered is False
    mock_post.assert_not_called()


def test_undecryptable_token_is_not_sent(command, db, setup_channel_connection):
    setup_channel_connection.encrypted_access_token = b"not-a-fernet-token"
    db.commit()
    with patch("requests.post") as mock_post:
        result = command.execute(setup_channel_connection, "S1", {"text": "Hi"})
    assert result.delivered is False
    assert "cannot be decrypted" in result.error
    mock_post.assert_not_called()
