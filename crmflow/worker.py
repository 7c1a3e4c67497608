"""Worker process entry point: consumes CRM events and runs workflows."""

import asyncio
import signal

from crmflow.core.config import get_settings
from crmflow.core.logging import get_logger, setup_logging
from crmflow.engine.workflow import WorkflowEngine, build_workflow_engine
from crmflow.messaging.consumer import RabbitMQConsumer
from crmflow.messaging.handler import TriggerEventHandler
from crmflow.storage.auxiliary import IdempotencyStore
from crmflow.storage.redis_client import (
    close_redis_pool,
    get_redis,
    init_redis_pool,
)

logger = get_logger(__name__)


class WorkerManager:
    """Owns the consumer and the engine for the lifetime of the process."""

    def __init__(self):
        self._settings = get_settings()
        self._consumer: RabbitMQConsumer | None = None
        self._engine: WorkflowEngine | None = None

    async def start(self) -> None:
        """Start consuming."""
        setup_logging()
        logger.info("Starting worker", app_name=self._settings.app_name, version=self._settings.app_version)

        await init_redis_pool()
        redis = get_redis()

        self._engine = build_workflow_engine(redis, self._settings)
        handler = TriggerEventHandler(self._engine, IdempotencyStore(redis))
        self._consumer = RabbitMQConsumer(handler.handle_event)

        try:
            await self._consumer.start_consuming()
        except asyncio.CancelledError:
            logger.info("Consumer cancelled")
        finally:
            await self._cleanup()

    async def stop(self) -> None:
        """Signal the consumer to stop."""
        logger.info("Stopping worker")
        if self._consumer:
            self._consumer.stop()

    async def _cleanup(self) -> None:
        logger.info("Cleaning up resources")
        if self._consumer:
            await self._consumer.disconnect()
        if self._engine:
            await self._engine.close()
        await close_redis_pool()
        logger.info("Cleanup complete")


async def main() -> None:
    """Main entry point for worker process."""
    manager = WorkerManager()

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        asyncio.create_task(manager.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    await manager.start()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
