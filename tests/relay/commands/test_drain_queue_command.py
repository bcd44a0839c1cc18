"""Tests for DrainQueueCommand: outcome to queue-transition mapping."""

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from relay.commands.drain_queue_command import DrainQueueCommand
from relay.commands.process_message_command import ProcessMessageCommand
from relay.constants.statuses import ProcessingOutcome, QueueStatus
from relay.schemas.relay import ProcessingResult
from relay.services.queue_service import DurableQueue
from tests.relay.commands.helpers import fake_post, text_trace


def enqueue(db, tenant_id, mid):
    return DurableQueue(db).enqueue(
        tenant_id, "facebook", "S1", "P1", {"mid": mid, "text": mid}, 1700000000000
    )


def processor_returning(outcomes):
    """Fake processor keyed by message mid."""
    processor = MagicMock()

    def execute(queued):
        outcome = outcomes[queued.external_message_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome.model_copy(update={"queue_id": queued.id})

    processor.execute.side_effect = execute
    return processor


def test_outcomes_map_to_queue_transitions(db, tenant_id):
    ids = {mid: enqueue(db, tenant_id, mid) for mid in ("ok", "undelivered", "flaky", "broken")}
    processor = processor_returning(
        {
            "ok": ProcessingResult(outcome=ProcessingOutcome.DELIVERED),
            "undelivered": ProcessingResult(
                outcome=ProcessingOutcome.ACCEPTED_UNDELIVERED, warning="not sent"
            ),
            "flaky": ProcessingResult(
                outcome=ProcessingOutcome.FAILED, error="timeout", transient=True
            ),
            "broken": ProcessingResult(
                outcome=ProcessingOutcome.FAILED, error="no connection"
            ),
        }
    )

    summary = DrainQueueCommand(db, processor=processor).execute(limit=10)

    assert summary["claimed"] == 4
    assert summary["processed"] == 2
    assert summary["released"] == 1
    assert summary["failed"] == 1
    assert len(summary["results"]) == 4

    queue = DurableQueue(db)
    assert queue.get(ids["ok"]).status == QueueStatus.COMPLETED.value
    assert queue.get(ids["undelivered"]).status == QueueStatus.COMPLETED.value
    assert queue.get(ids["flaky"]).status == QueueStatus.PENDING.value
    assert queue.get(ids["flaky"]).last_error == "timeout"
    assert queue.get(ids["broken"]).status == QueueStatus.FAILED.value
    assert queue.get(ids["broken"]).last_error == "no connection"


def test_transient_failure_without_attempts_left_fails(db, tenant_id, monkeypatch):
    monkeypatch.setenv("QUEUE_MAX_ATTEMPTS", "1")
    queue_id = enqueue(db, tenant_id, "flaky")
    processor = processor_returning(
        {"flaky": ProcessingResult(outcome=ProcessingOutcome.FAILED, transient=True)}
    )

    summary = DrainQueueCommand(db, processor=processor).execute()

    assert summary["failed"] == 1
    assert summary["released"] == 0
    assert DurableQueue(db).get(queue_id).status == QueueStatus.FAILED.value


def test_unexpected_error_does_not_stop_batch(db, tenant_id):
    crash_id = enqueue(db, tenant_id, "crash")
    ok_id = enqueue(db, tenant_id, "ok")
    processor = processor_returning(
        {
            "crash": RuntimeError("boom"),
            "ok": ProcessingResult(outcome=ProcessingOutcome.DELIVERED),
        }
    )

    summary = DrainQueueCommand(db, processor=processor).execute()

    assert summary["processed"] == 1
    assert summary["failed"] == 1
    queue = DurableQueue(db)
    assert queue.get(crash_id).status == QueueStatus.FAILED.value
    assert queue.get(crash_id).last_error == "boom"
    assert queue.get(ok_id).status == QueueStatus.COMPLETED.value


def test_batch_size_is_bounded(db, tenant_id, monkeypatch):
    monkeypatch.setenv("QUEUE_BATCH_SIZE", "2")
    for n in range(3):
        enqueue(db, tenant_id, f"m_{n}")
    processor = MagicMock()
    processor.execute.side_effect = lambda q: ProcessingResult(
        outcome=ProcessingOutcome.DELIVERED, queue_id=q.id
    )

    summary = DrainQueueCommand(db, processor=processor).execute()

    assert summary["claimed"] == 2
    assert DurableQueue(db).count_by_status(QueueStatus.PENDING) == 1


def test_empty_queue(db):
    processor = MagicMock()
    summary = DrainQueueCommand(db, processor=processor).execute()
    assert summary == {"claimed": 0, "processed": 0, "failed": 0, "released": 0, "results": []}
    processor.execute.assert_not_called()


def test_drains_through_real_pipeline(
    db, setup_queued_message, setup_channel_connection, setup_agent_config
):
    processor = ProcessMessageCommand(db, sleep=lambda _: None)
    with patch("requests.post", side_effect=fake_post([text_trace("Hi")])):
        summary = DrainQueueCommand(db, processor=processor).execute()

    assert summary["processed"] == 1
    assert summary["results"][0]["outcome"] == "delivered"
    assert DurableQueue(db).get(setup_queued_message.id).status == QueueStatus.COMPLETED.value


def failing_once(method, error):
    """Wrap a queue method so its first call raises ``error``."""
    calls = {"count": 0}

    def wrapper(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise error
        return method(*args, **kwargs)

    return wrapper


def test_transition_write_is_retried(db, tenant_id):
    first_id = enqueue(db, tenant_id, "first")
    second_id = enqueue(db, tenant_id, "second")
    processor = processor_returning(
        {
            "first": ProcessingResult(outcome=ProcessingOutcome.DELIVERED),
            "second": ProcessingResult(outcome=ProcessingOutcome.DELIVERED),
        }
    )
    command = DrainQueueCommand(db, processor=processor, sleep=lambda _: None)
    outage = OperationalError("UPDATE queued_messages", {}, Exception("connection reset"))
    command.queue.mark_completed = failing_once(command.queue.mark_completed, outage)

    summary = command.execute()

    assert processor.execute.call_count == 2
    assert summary["processed"] == 2
    queue = DurableQueue(db)
    assert queue.get(first_id).status == QueueStatus.COMPLETED.value
    assert queue.get(second_id).status == QueueStatus.COMPLETED.value


def test_transition_write_failure_does_not_stop_batch(db, tenant_id):
    enqueue(db, tenant_id, "first")
    enqueue(db, tenant_id, "second")
    processor = processor_returning(
        {
            "first": ProcessingResult(outcome=ProcessingOutcome.DELIVERED),
            "second": ProcessingResult(outcome=ProcessingOutcome.DELIVERED),
        }
    )
    command = DrainQueueCommand(db, processor=processor, sleep=lambda _: None)
    outage = OperationalError("UPDATE queued_messages", {}, Exception("connection reset"))

    with patch.object(command.queue, "mark_completed", side_effect=outage) as mark:
        summary = command.execute()

    assert processor.execute.call_count == 2
    assert len(summary["results"]) == 2
    # two attempts per message
    assert mark.call_count == 4
    assert DurableQueue(db).count_by_status(QueueStatus.PROCESSING) == 2
