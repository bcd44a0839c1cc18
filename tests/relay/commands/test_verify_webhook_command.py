"""Tests for the subscription handshake command."""

from unittest.mock import patch

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from relay.commands.webhooks.verify_webhook_command import VerifyWebhookCommand


@pytest.fixture
def command(db):
    return VerifyWebhookCommand(db, sleep=lambda _: None)


def test_matching_token_echoes_challenge(command, tenant_id, setup_webhook_config):
    response = command.execute(
        tenant_id, "facebook", "subscribe", setup_webhook_config.verification_token, "1158201444"
    )
    assert response.status_code == 200
    assert response.body == b"1158201444"
    assert response.media_type == "text/plain"


def test_token_without_tenant_matches_any_active_config(command, setup_webhook_config):
    response = command.execute(
        None, None, "subscribe", setup_webhook_config.verification_token, "abc"
    )
    assert response.body == b"abc"


def test_wrong_token_is_unauthorized(command, tenant_id, setup_webhook_config):
    with pytest.raises(HTTPException) as exc_info:
        command.execute(tenant_id, "facebook", "subscribe", "wrong", "abc")
    assert exc_info.value.status_code == 401


def test_token_for_other_channel_is_unauthorized(command, tenant_id, setup_webhook_config):
    with pytest.raises(HTTPException) as exc_info:
        command.execute(
            tenant_id, "instagram", "subscribe", setup_webhook_config.verification_token, "abc"
        )
    assert exc_info.value.status_code == 401


@pytest.mark.parametrize("mode,token", [("unsubscribe", "t"), (None, "t"), ("subscribe", None), ("subscribe", "")])
def test_bad_mode_or_missing_token_is_bad_request(command, mode, token):
    with pytest.raises(HTTPException) as exc_info:
        command.execute("T1", "facebook", mode, token, "abc")
    assert exc_info.value.status_code == 400


def test_lookup_failure_is_server_error(command):
    outage = OperationalError("SELECT 1", {}, Exception("down"))
    with patch.object(
        command.webhook_config_service, "find_active_config", side_effect=outage
    ) as lookup:
        with pytest.raises(HTTPException) as exc_info:
            command.execute("T1", "facebook", "subscribe", "token", "abc")
    assert exc_info.value.status_code == 500
    assert lookup.call_count == 3
