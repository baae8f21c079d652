"""Job dispatch: in-process background tasks or durable Temporal workflows.

Handlers live on an explicit HandlerRegistry built at wiring time and
shared by reference with whichever queue variant is configured (and, for
the durable variant, with the Temporal worker that executes them).
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Coroutine, Dict, List, Optional, Set
from uuid import uuid4

from temporalio.client import Client as TemporalClient
from temporalio.exceptions import WorkflowAlreadyStartedError

from tender_ai.core.config import Settings
from tender_ai.core.exceptions import ConfigurationError
from tender_ai.temporal.constants import QUEUE_DISPATCH_WORKFLOW
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

JobHandler = Callable[[Dict[str, Any]], Awaitable[None]]


class HandlerRegistry:
    """Topic -> handler map, populated once during application wiring."""

    def __init__(self) -> None:
        self._handlers: Dict[str, JobHandler] = {}

    def register(self, topic: str, handler: JobHandler) -> None:
        if topic in self._handlers:
            LOGGER.warning(f"Replacing handler for topic '{topic}'")
        self._handlers[topic] = handler
        LOGGER.debug(f"Registered handler for topic '{topic}'")

    def get(self, topic: str) -> Optional[JobHandler]:
        return self._handlers.get(topic)

    def topics(self) -> List[str]:
        return sorted(self._handlers)

    def __contains__(self, topic: str) -> bool:
        return topic in self._handlers


def spawn_supervised(
    coro: Coroutine[Any, Any, Any],
    name: str,
    tasks: Optional[Set[asyncio.Task]] = None,
) -> asyncio.Task:
    """Run a coroutine in the background and log how it ends.

    Failures are logged with their traceback instead of disappearing with
    the task. When `tasks` is given the task is kept there until done so
    it is not garbage collected mid-flight.
    """
    task = asyncio.create_task(coro, name=name)
    if tasks is not None:
        tasks.add(task)

    def _on_done(finished: asyncio.Task) -> None:
        if tasks is not None:
            tasks.discard(finished)
        if finished.cancelled():
            LOGGER.info(f"Background task cancelled: {name}")
            return
        error = finished.exception()
        if error is not None:
            LOGGER.error(
                f"Background task failed: {name}: {error}",
                exc_info=(type(error), error, error.__traceback__),
                extra={"task": name, "error_type": type(error).__name__},
            )
        else:
            LOGGER.debug(f"Background task finished: {name}")

    task.add_done_callback(_on_done)
    return task


class QueueService(ABC):
    """send(topic, payload) -> job id; register(topic, handler)."""

    def __init__(self, registry: HandlerRegistry):
        self.registry = registry

    def register(self, topic: str, handler: JobHandler) -> None:
        self.registry.register(topic, handler)

    @abstractmethod
    async def send(self, topic: str, payload: Dict[str, Any], key: Optional[str] = None) -> str:
        """Dispatch a job.

        Args:
            topic: Handler topic
            payload: JSON-serialisable payload
            key: Optional serialisation key; jobs sharing a key never run concurrently

        Returns:
            Job id
        """

    async def close(self) -> None:
        return None


class LocalQueueService(QueueService):
    """Runs handlers on background tasks in this process.

    No retry and no durability: a failed handler is logged, and a process
    crash loses in-flight jobs.
    """

    def __init__(self, registry: HandlerRegistry):
        super().__init__(registry)
        self._tasks: Set[asyncio.Task] = set()
        self._locks: Dict[str, asyncio.Lock] = {}

    async def send(self, topic: str, payload: Dict[str, Any], key: Optional[str] = None) -> str:
        job_id = str(uuid4())
        handler = self.registry.get(topic)
        if handler is None:
            LOGGER.warning(f"No handler registered for topic '{topic}', dropping job", extra={"job_id": job_id})
            return job_id

        LOGGER.info(f"Dispatching local job {job_id} on '{topic}'", extra={"key": key})
        spawn_supervised(self._run(handler, payload, key), name=f"{topic}:{job_id}", tasks=self._tasks)
        return job_id

    async def _run(self, handler: JobHandler, payload: Dict[str, Any], key: Optional[str]) -> None:
        if key is None:
            await handler(payload)
            return
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            await handler(payload)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight job."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()


class TemporalQueueService(QueueService):
    """One Temporal workflow per message.

    The workflow executes the handler as an activity with a retry policy
    (at-least-once, up to `max_deliveries` attempts) and records a dead
    letter once attempts are exhausted. Keyed jobs use the key as workflow
    id so a duplicate trigger for a running job is rejected by the server.
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        client_factory: Callable[[], Awaitable[TemporalClient]],
        task_queue: str,
        max_deliveries: int,
    ):
        super().__init__(registry)
        self.client_factory = client_factory
        self.task_queue = task_queue
        self.max_deliveries = max_deliveries

    async def send(self, topic: str, payload: Dict[str, Any], key: Optional[str] = None) -> str:
        workflow_id = f"{topic}:{key}" if key else f"{topic}:{uuid4()}"
        client = await self.client_factory()
        try:
            await client.start_workflow(
                QUEUE_DISPATCH_WORKFLOW,
                args=[topic, payload, self.max_deliveries],
                id=workflow_id,
                task_queue=self.task_queue,
            )
            LOGGER.info(f"Dispatched durable job {workflow_id}", extra={"topic": topic})
        except WorkflowAlreadyStartedError:
            LOGGER.warning(f"Job {workflow_id} already running, trigger ignored", extra={"topic": topic})
        return workflow_id


def build_queue_service(settings: Settings, registry: HandlerRegistry) -> QueueService:
    """Select the queue variant named by settings.queue.backend."""
    from tender_ai.core.temporal_client import get_temporal_client

    factories: Dict[str, Callable[[], QueueService]] = {
        "local": lambda: LocalQueueService(registry),
        "temporal": lambda: TemporalQueueService(
            registry,
            client_factory=get_temporal_client,
            task_queue=settings.queue.temporal_task_queue,
            max_deliveries=settings.queue.max_deliveries,
        ),
    }
    factory = factories.get(settings.queue.backend)
    if factory is None:
        raise ConfigurationError(f"Unknown queue backend '{settings.queue.backend}'")
    LOGGER.info(f"Using {settings.queue.backend} queue backend", extra={"topics": registry.topics()})
    return factory()
