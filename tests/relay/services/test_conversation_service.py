"""Tests for ConversationService."""

import pytest

from relay.constants.statuses import SenderType
from relay.models.conversation import Conversation
from relay.services.conversation_service import ConversationService
from relay.utils.time import as_utc, from_epoch_millis


@pytest.fixture
def service(db):
    return ConversationService(db)


def test_get_or_create_creates_once(service, db, tenant_id):
    first = service.get_or_create_conversation(tenant_id, "facebook", "S1", None, 1700000000000)
    second = service.get_or_create_conversation(tenant_id, "facebook", "S1", None, 1700000005000)

    assert first.id == second.id
    assert db.query(Conversation).count() == 1
    assert second.external_id == "S1"
    assert second.participant_id == "S1"
    assert as_utc(second.last_message_at) == from_epoch_millis(1700000005000)


def test_conversations_are_per_channel(service, tenant_id):
    fb = service.get_or_create_conversation(tenant_id, "facebook", "S1", None, 1)
    ig = service.get_or_create_conversation(tenant_id, "instagram", "S1", None, 1)
    assert fb.id != ig.id


def test_concurrent_create_adopts_existing_row(service, db, tenant_id, monkeypatch):
    winner = service.get_or_create_conversation(tenant_id, "facebook", "S1", None, 1)
    original = service.get_conversation_by_key
    calls = []

    def racing_lookup(*args):
        calls.append(args)
        # First lookup misses, as if the other worker had not committed yet
        if len(calls) == 1:
            return None
        return original(*args)

    monkeypatch.setattr(service, "get_conversation_by_key", racing_lookup)

    reconciled = service.get_or_create_conversation(tenant_id, "facebook", "S1", None, 2)

    assert reconciled.id == winner.id
    assert db.query(Conversation).count() == 1


def test_record_message_and_history(service, tenant_id):
    conversation = service.get_or_create_conversation(tenant_id, "facebook", "S1", None, 1)
    service.record_message(
        conversation.id,
        SenderType.USER,
        "Hello",
        external_id="m_1",
        sent_at=from_epoch_millis(1700000000000),
    )
    service.record_message(conversation.id, "assistant", "Hi there")

    messages = service.get_messages(conversation.id)

    assert [(m.sender_type, m.content) for m in messages] == [
        ("user", "Hello"),
        ("assistant", "Hi there"),
    ]
    assert messages[0].external_id == "m_1"


def test_record_message_rejects_unknown_sender(service, tenant_id):
    conversation = service.get_or_create_conversation(tenant_id, "facebook", "S1", None, 1)
    with pytest.raises(ValueError):
        service.record_message(conversation.id, "bot", "nope")
