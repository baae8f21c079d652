"""Queue topics and the handlers that execute them.

Every handler opens its own database session, so it can run on a
background task or inside a Temporal activity alike. Handlers rebuild
their outputs from scratch, which keeps redelivered messages safe.
"""

from typing import Any, Callable, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.core.database import async_session_maker
from tender_ai.schemas.enums import JobType
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.ai.preferences import load_preferences
from tender_ai.services.drafting.draft_service import DraftService
from tender_ai.services.indexing.embedding_indexer import EmbeddingIndexer
from tender_ai.services.jobs.progress_tracker import JobProgressTracker
from tender_ai.services.jobs.queue_service import HandlerRegistry, JobHandler
from tender_ai.services.pipeline.feedback_service import FeedbackExtractionService
from tender_ai.services.pipeline.orchestrator import PipelineOrchestrator
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

SETUP_TOPIC = "setup.run"
INDEX_TOPIC = "knowledge.index"
DRAFT_ALL_TOPIC = "drafts.generate_all"
FEEDBACK_TOPIC = "feedback.extract"

SessionFactory = Callable[[], Any]


def project_key(project_id: UUID) -> str:
    """Serialisation key shared by every job that rebuilds a project's data."""
    return f"project-{project_id}"


async def _index_knowledge(session: AsyncSession, gateway: GenerationGateway, project_id: UUID) -> str:
    tracker = JobProgressTracker(session)
    async with tracker.track(project_id, JobType.INDEXING) as job:
        async def report(progress: float, message: str) -> None:
            await tracker.update(job, progress, message)

        result = await EmbeddingIndexer(session, gateway).index_project(project_id, report)
        await tracker.complete(job, result.summary)
    return result.summary


async def _extract_feedback(
    session: AsyncSession, gateway: GenerationGateway, project_id: UUID, user_id: Optional[str] = None
) -> str:
    preferences = await load_preferences(session, project_id, user_id)
    tracker = JobProgressTracker(session)
    async with tracker.track(project_id, JobType.FEEDBACK) as job:
        async def report(progress: float, message: str) -> None:
            await tracker.update(job, progress, message)

        summary = await FeedbackExtractionService(session, gateway).run(project_id, preferences, report)
        await tracker.complete(job, summary)
    return summary


def build_handler_registry(
    gateway: GenerationGateway,
    session_factory: SessionFactory = async_session_maker,
) -> HandlerRegistry:
    """Registry with one handler per topic, bound to the shared gateway."""
    registry = HandlerRegistry()

    async def run_setup(payload: Dict[str, Any]) -> None:
        project_id = UUID(payload["project_id"])
        async with session_factory() as session:
            await PipelineOrchestrator(session, gateway).run(project_id, payload.get("user_id"))

    async def run_indexing(payload: Dict[str, Any]) -> None:
        project_id = UUID(payload["project_id"])
        async with session_factory() as session:
            await _index_knowledge(session, gateway, project_id)

    async def run_draft_all(payload: Dict[str, Any]) -> None:
        project_id = UUID(payload["project_id"])
        async with session_factory() as session:
            preferences = await load_preferences(session, project_id, payload.get("user_id"))
            await DraftService(session, gateway).generate_all(project_id, preferences)

    async def run_feedback(payload: Dict[str, Any]) -> None:
        project_id = UUID(payload["project_id"])
        async with session_factory() as session:
            await _extract_feedback(session, gateway, project_id, payload.get("user_id"))

    handlers: Dict[str, JobHandler] = {
        SETUP_TOPIC: run_setup,
        INDEX_TOPIC: run_indexing,
        DRAFT_ALL_TOPIC: run_draft_all,
        FEEDBACK_TOPIC: run_feedback,
    }
    for topic, handler in handlers.items():
        registry.register(topic, handler)

    LOGGER.info("Job handlers registered", extra={"topics": registry.topics()})
    return registry
