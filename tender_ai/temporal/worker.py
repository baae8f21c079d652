"""Temporal worker for the durable job queue.

Run with ``python -m tender_ai.temporal.worker`` when QUEUE_BACKEND=temporal.
The worker builds the same generation gateway and handler registry as the
API process and executes queued messages as activities.
"""

import asyncio

from temporalio.client import Client
from temporalio.worker import Worker

from tender_ai.core.config import settings
from tender_ai.services.ai.generation_gateway import build_gateway
from tender_ai.services.jobs.handlers import build_handler_registry
from tender_ai.temporal.activities import QueueActivities
from tender_ai.temporal.workflows import QueueDispatchWorkflow
from tender_ai.utils.logging import get_logger

logger = get_logger(__name__)

CONNECT_ATTEMPTS = 5
CONNECT_RETRY_DELAY = 5


async def connect_with_retry() -> Client:
    client = None
    for attempt in range(CONNECT_ATTEMPTS):
        try:
            logger.info(
                f"Connecting to Temporal server at {settings.temporal_target} "
                f"(Attempt {attempt + 1}/{CONNECT_ATTEMPTS})"
            )
            client = await Client.connect(
                settings.temporal_target,
                namespace=settings.queue.temporal_namespace,
            )
            break
        except Exception as e:
            if attempt < CONNECT_ATTEMPTS - 1:
                logger.warning(f"Connection attempt {attempt + 1} failed: {e}. Retrying in {CONNECT_RETRY_DELAY}s...")
                await asyncio.sleep(CONNECT_RETRY_DELAY)
            else:
                logger.error(f"Failed to connect to Temporal server after {CONNECT_ATTEMPTS} attempts: {e}")
                raise
    logger.info("Successfully connected to Temporal server")
    return client


def build_worker(client: Client) -> Worker:
    registry = build_handler_registry(build_gateway(settings))
    activities = QueueActivities(registry)
    return Worker(
        client,
        task_queue=settings.queue.temporal_task_queue,
        workflows=[QueueDispatchWorkflow],
        activities=activities.all(),
        max_concurrent_activities=10,
        max_concurrent_workflow_tasks=20,
    )


async def main() -> None:
    client = await connect_with_retry()
    worker = build_worker(client)
    logger.info(
        f"Worker polling task queue '{settings.queue.temporal_task_queue}'",
        extra={"max_deliveries": settings.queue.max_deliveries},
    )
    await worker.run()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
    except Exception as e:
        logger.error(f"Worker failed: {e}", exc_info=True)
        raise
