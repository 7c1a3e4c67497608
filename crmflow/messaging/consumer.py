"""RabbitMQ message consumer."""

import asyncio
import json
import uuid
from typing import Any, Callable, Coroutine

import aio_pika
from aio_pika.abc import AbstractIncomingMessage, AbstractRobustConnection
from pydantic import ValidationError

from crmflow.core.config import get_settings
from crmflow.core.logging import get_logger
from crmflow.models.event import TriggerMessage

logger = get_logger(__name__)

MessageHandler = Callable[[TriggerMessage], Coroutine[Any, Any, None]]


def parse_message(body: bytes, message_id: str | None = None) -> TriggerMessage | None:
    """Decode a queue message into a TriggerMessage.

    Accepts ``trigger`` or the legacy ``event_type`` key for the trigger name.
    A message carrying neither an ``event_id`` nor an AMQP message id gets a
    fresh one, so it is never deduplicated against another event.

    Returns:
        Parsed message, or None if the body is unusable
    """
    try:
        data = json.loads(body.decode())
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Invalid JSON message", message_id=message_id, error=str(e))
        return None

    if not isinstance(data, dict):
        logger.warning("Message body is not an object", message_id=message_id)
        return None

    trigger = data.get("trigger") or data.get("event_type")
    if not trigger:
        logger.warning("Message missing trigger", message_id=message_id)
        return None

    event_id = data.get("event_id") or message_id
    if not event_id:
        event_id = f"evt_{uuid.uuid4().hex}"
        logger.debug("Message without event id, assigned one", event_id=event_id)

    fields: dict[str, Any] = {
        "event_id": str(event_id),
        "trigger": trigger,
        "data": data.get("data") or {},
    }
    if data.get("timestamp"):
        fields["timestamp"] = data["timestamp"]

    try:
        return TriggerMessage.model_validate(fields)
    except ValidationError as e:
        logger.warning("Malformed trigger message", message_id=message_id, error=str(e))
        return None


class RabbitMQConsumer:
    """Consumes CRM trigger events from a durable RabbitMQ queue.

    Every message is acked once handled, whatever the outcome: a failing
    event is logged rather than redelivered in a loop.
    """

    def __init__(
        self,
        handler: MessageHandler,
        url: str | None = None,
        queue_name: str | None = None,
    ):
        settings = get_settings()
        self._handler = handler
        self._url = url or settings.rabbitmq_url
        self._queue_name = queue_name or settings.rabbitmq_queue
        self._connection: AbstractRobustConnection | None = None
        self._stopped = asyncio.Event()

    async def connect(self) -> None:
        """Connect to RabbitMQ."""
        self._connection = await aio_pika.connect_robust(self._url, reconnect_interval=5)
        logger.info("Connected to RabbitMQ")

    async def disconnect(self) -> None:
        """Disconnect from RabbitMQ."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Disconnected from RabbitMQ")

    async def start_consuming(self) -> None:
        """Consume until stop() is called."""
        if not self._connection:
            await self.connect()

        channel = await self._connection.channel()
        # One event at a time keeps trigger processing sequential
        await channel.set_qos(prefetch_count=1)
        queue = await channel.declare_queue(self._queue_name, durable=True)

        consumer_tag = await queue.consume(self._process_message)
        logger.info("Consuming trigger events", queue=self._queue_name)
        try:
            await self._stopped.wait()
        finally:
            await queue.cancel(consumer_tag)
            logger.info("Stopped consuming", queue=self._queue_name)

    async def _process_message(self, message: AbstractIncomingMessage) -> None:
        async with message.process():
            event = parse_message(message.body, message.message_id)
            if event is None:
                return
            try:
                await self._handler(event)
            except Exception as e:
                logger.error("Error processing message", event_id=event.event_id, error=str(e), exc_info=True)

    def stop(self) -> None:
        """Signal the consumer to stop after the message in flight."""
        self._stopped.set()
