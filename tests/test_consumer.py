"""Tests for queue message parsing and event handling."""

import json

import pytest

from crmflow.core.exceptions import StorageUnavailableError
from crmflow.engine.workflow import TriggerSummary
from crmflow.messaging.consumer import parse_message
from crmflow.messaging.handler import TriggerEventHandler
from crmflow.models.event import TriggerMessage
from crmflow.storage.auxiliary import IdempotencyStore


class FakeEngine:
    def __init__(self, error: Exception | None = None):
        self.processed: list[tuple[str, dict]] = []
        self._error = error

    async def process_trigger(self, trigger_name: str, payload: dict) -> TriggerSummary:
        if self._error is not None:
            raise self._error
        self.processed.append((trigger_name, payload))
        return TriggerSummary(trigger=trigger_name, rules_matched=1, rules_fired=["wf_a"])


class FakeIdempotency:
    def __init__(self) -> None:
        self.seen: set[str] = set()

    async def mark_processed(self, event_id: str) -> bool:
        if event_id in self.seen:
            return False
        self.seen.add(event_id)
        return True


def test_parse_message() -> None:
    body = json.dumps({
        "event_id": "evt_1",
        "trigger": "lead_created",
        "timestamp": "2024-05-01T10:00:00Z",
        "data": {"lead_id": 1},
    }).encode()

    message = parse_message(body)

    assert message is not None
    assert message.event_id == "evt_1"
    assert message.trigger == "lead_created"
    assert message.timestamp.year == 2024
    assert message.data == {"lead_id": 1}


def test_parse_message_accepts_legacy_event_type() -> None:
    body = json.dumps({"event_type": "sale_created", "data": {"sale_id": 3}}).encode()

    message = parse_message(body, message_id="amqp-7")

    assert message is not None
    assert message.trigger == "sale_created"
    assert message.event_id == "amqp-7"


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"\xff\xfe",
        b"[1, 2]",
        json.dumps({"data": {}}).encode(),
        json.dumps({"trigger": "lead_created", "data": "oops"}).encode(),
    ],
)
def test_unusable_messages_are_dropped(body: bytes) -> None:
    assert parse_message(body, message_id="m") is None


@pytest.mark.asyncio
async def test_handler_runs_engine_once_per_event() -> None:
    engine = FakeEngine()
    handler = TriggerEventHandler(engine, FakeIdempotency())
    event = TriggerMessage(event_id="evt_1", trigger="lead_created", data={"lead_id": 1})

    await handler.handle_event(event)
    await handler.handle_event(event)

    assert engine.processed == [("lead_created", {"lead_id": 1})]


@pytest.mark.asyncio
async def test_handler_drops_event_when_storage_is_down() -> None:
    engine = FakeEngine(error=StorageUnavailableError("list_rules_by_trigger", ConnectionError("down")))
    handler = TriggerEventHandler(engine, FakeIdempotency())

    await handler.handle_event(TriggerMessage(event_id="evt_2", trigger="lead_created"))

    assert engine.processed == []


@pytest.mark.asyncio
async def test_events_without_ids_are_not_deduplicated_together(fake_redis) -> None:
    engine = FakeEngine()
    handler = TriggerEventHandler(engine, IdempotencyStore(fake_redis, ttl_seconds=60))
    bodies = [
        json.dumps({"trigger": "lead_created", "data": {"lead_id": 1}}).encode(),
        json.dumps({"trigger": "lead_created", "data": {"lead_id": 2}}).encode(),
    ]

    events = [parse_message(body, None) for body in bodies]
    for event in events:
        assert event is not None
        await handler.handle_event(event)

    assert all(event.event_id for event in events)
    assert events[0].event_id != events[1].event_id
    assert engine.processed == [
        ("lead_created", {"lead_id": 1}),
        ("lead_created", {"lead_id": 2}),
    ]
