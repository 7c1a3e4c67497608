"""Trigger event processing handler."""

import time

from crmflow.core.exceptions import StorageUnavailableError
from crmflow.core.logging import get_logger
from crmflow.engine.workflow import WorkflowEngine
from crmflow.models.event import TriggerMessage
from crmflow.observability.tracing import TraceContext
from crmflow.storage.auxiliary import IdempotencyStore

logger = get_logger(__name__)


class TriggerEventHandler:
    """Feeds queued CRM events into the workflow engine."""

    def __init__(self, engine: WorkflowEngine, idempotency: IdempotencyStore):
        self._engine = engine
        self._idempotency = idempotency

    async def handle_event(self, event: TriggerMessage) -> None:
        """Process one CRM event.

        Pipeline steps:
        1. Idempotency check
        2. Run matching workflow rules

        A storage outage is logged and the event dropped; the engine never
        acts on a partial rule list.
        """
        start_time = time.time()

        with TraceContext(event_id=event.event_id):
            logger.info("Processing event", event_id=event.event_id, trigger=event.trigger)

            try:
                if not await self._idempotency.mark_processed(event.event_id):
                    logger.debug("Event already processed", event_id=event.event_id)
                    return

                summary = await self._engine.process_trigger(event.trigger, event.data)
            except StorageUnavailableError as e:
                logger.error(
                    "Event dropped, storage unavailable",
                    event_id=event.event_id,
                    trigger=event.trigger,
                    error=str(e),
                )
                return

            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.info(
                "Event processing complete",
                event_id=event.event_id,
                rules_matched=summary.rules_matched,
                rules_fired=len(summary.rules_fired),
                elapsed_ms=elapsed_ms,
            )
