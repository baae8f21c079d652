"""Unit tests for the job queue variants and supervised background tasks."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from temporalio.exceptions import WorkflowAlreadyStartedError

from tender_ai.core.exceptions import ConfigurationError
from tender_ai.services.jobs.queue_service import (
    HandlerRegistry,
    LocalQueueService,
    TemporalQueueService,
    build_queue_service,
    spawn_supervised,
)
from tender_ai.temporal.constants import QUEUE_DISPATCH_WORKFLOW


# ----------------------------------------------------------------------
# HandlerRegistry
# ----------------------------------------------------------------------

class TestHandlerRegistry:

    def test_register_and_lookup(self):
        registry = HandlerRegistry()
        handler = AsyncMock()
        registry.register("b.topic", handler)
        registry.register("a.topic", AsyncMock())

        assert registry.get("b.topic") is handler
        assert registry.get("missing") is None
        assert "a.topic" in registry
        assert registry.topics() == ["a.topic", "b.topic"]

    def test_registries_are_independent(self):
        first, second = HandlerRegistry(), HandlerRegistry()
        first.register("topic", AsyncMock())

        assert "topic" not in second


# ----------------------------------------------------------------------
# spawn_supervised
# ----------------------------------------------------------------------

class TestSpawnSupervised:

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_lost(self):
        async def failing():
            raise ValueError("handler bug")

        with patch("tender_ai.services.jobs.queue_service.LOGGER") as logger:
            task = spawn_supervised(failing(), name="failing-job")
            await asyncio.gather(task, return_exceptions=True)
            await asyncio.sleep(0)

        logger.error.assert_called_once()
        assert "failing-job" in logger.error.call_args.args[0]

    @pytest.mark.asyncio
    async def test_task_set_tracks_in_flight(self):
        tasks = set()
        release = asyncio.Event()

        task = spawn_supervised(release.wait(), name="waiting", tasks=tasks)
        assert task in tasks

        release.set()
        await task
        await asyncio.sleep(0)
        assert task not in tasks


# ----------------------------------------------------------------------
# LocalQueueService
# ----------------------------------------------------------------------

class TestLocalQueueService:

    @pytest.mark.asyncio
    async def test_send_runs_handler_in_background(self):
        registry = HandlerRegistry()
        handler = AsyncMock()
        registry.register("topic", handler)
        queue = LocalQueueService(registry)

        job_id = await queue.send("topic", {"project_id": "p1"})
        await queue.drain()

        assert job_id
        handler.assert_awaited_once_with({"project_id": "p1"})

    @pytest.mark.asyncio
    async def test_unknown_topic_is_dropped(self):
        queue = LocalQueueService(HandlerRegistry())

        job_id = await queue.send("missing", {})

        assert job_id
        assert queue.pending == 0

    @pytest.mark.asyncio
    async def test_register_goes_through_shared_registry(self):
        registry = HandlerRegistry()
        queue = LocalQueueService(registry)
        queue.register("topic", AsyncMock())

        assert "topic" in registry

    @pytest.mark.asyncio
    async def test_same_key_jobs_run_one_at_a_time(self):
        registry = HandlerRegistry()
        events = []
        release = asyncio.Event()

        async def first(payload):
            events.append("first-start")
            await release.wait()
            events.append("first-end")

        async def second(payload):
            events.append("second-start")

        registry.register("first", first)
        registry.register("second", second)
        queue = LocalQueueService(registry)

        await queue.send("first", {}, key="project-1")
        await queue.send("second", {}, key="project-1")
        for _ in range(5):
            await asyncio.sleep(0)
        assert events == ["first-start"]

        release.set()
        await queue.drain()
        assert events == ["first-start", "first-end", "second-start"]

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        registry = HandlerRegistry()
        started = []
        release = asyncio.Event()

        async def handler(payload):
            started.append(payload["n"])
            await release.wait()

        registry.register("topic", handler)
        queue = LocalQueueService(registry)

        await queue.send("topic", {"n": 1}, key="project-1")
        await queue.send("topic", {"n": 2}, key="project-2")
        for _ in range(5):
            await asyncio.sleep(0)

        assert sorted(started) == [1, 2]
        release.set()
        await queue.drain()

    @pytest.mark.asyncio
    async def test_failed_handler_does_not_break_queue(self):
        registry = HandlerRegistry()
        registry.register("bad", AsyncMock(side_effect=RuntimeError("boom")))
        good = AsyncMock()
        registry.register("good", good)
        queue = LocalQueueService(registry)

        await queue.send("bad", {}, key="k")
        await queue.send("good", {}, key="k")
        await queue.drain()

        good.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_jobs(self):
        registry = HandlerRegistry()
        registry.register("slow", lambda payload: asyncio.sleep(10))
        queue = LocalQueueService(registry)

        await queue.send("slow", {})
        await queue.close()
        await asyncio.sleep(0)

        assert queue.pending == 0


# ----------------------------------------------------------------------
# TemporalQueueService
# ----------------------------------------------------------------------

class TestTemporalQueueService:

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.start_workflow = AsyncMock()
        return client

    @pytest.fixture
    def queue(self, client):
        return TemporalQueueService(
            HandlerRegistry(),
            client_factory=AsyncMock(return_value=client),
            task_queue="tender-jobs",
            max_deliveries=5,
        )

    @pytest.mark.asyncio
    async def test_keyed_job_uses_deterministic_workflow_id(self, queue, client):
        job_id = await queue.send("setup.run", {"project_id": "p1"}, key="project-p1")

        assert job_id == "setup.run:project-p1"
        args, kwargs = client.start_workflow.await_args
        assert args[0] == QUEUE_DISPATCH_WORKFLOW
        assert kwargs["args"] == ["setup.run", {"project_id": "p1"}, 5]
        assert kwargs["id"] == "setup.run:project-p1"
        assert kwargs["task_queue"] == "tender-jobs"

    @pytest.mark.asyncio
    async def test_unkeyed_jobs_get_unique_ids(self, queue):
        first = await queue.send("drafts.generate_all", {})
        second = await queue.send("drafts.generate_all", {})

        assert first != second
        assert first.startswith("drafts.generate_all:")

    @pytest.mark.asyncio
    async def test_duplicate_trigger_for_running_job_is_ignored(self, queue, client):
        client.start_workflow.side_effect = WorkflowAlreadyStartedError("setup.run:project-p1", QUEUE_DISPATCH_WORKFLOW)

        job_id = await queue.send("setup.run", {}, key="project-p1")

        assert job_id == "setup.run:project-p1"


class TestBuildQueueService:

    def _settings(self, backend):
        return SimpleNamespace(queue=SimpleNamespace(
            backend=backend, temporal_task_queue="tender-jobs", max_deliveries=3,
        ))

    def test_local_backend(self):
        registry = HandlerRegistry()
        queue = build_queue_service(self._settings("local"), registry)

        assert isinstance(queue, LocalQueueService)
        assert queue.registry is registry

    def test_temporal_backend(self):
        queue = build_queue_service(self._settings("temporal"), HandlerRegistry())

        assert isinstance(queue, TemporalQueueService)
        assert queue.max_deliveries == 3

    def test_unknown_backend(self):
        with pytest.raises(ConfigurationError):
            build_queue_service(self._settings("kafka"), HandlerRegistry())
