"""Project setup pipeline: structure -> extraction -> indexing -> feedback."""

from typing import Awaitable, Callable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from tender_ai.database.models import JobProgress
from tender_ai.schemas.enums import JobType
from tender_ai.services.ai.generation_gateway import GenerationGateway
from tender_ai.services.ai.preferences import AIPreferences, load_preferences
from tender_ai.services.indexing.embedding_indexer import EmbeddingIndexer
from tender_ai.services.jobs.progress_tracker import JobProgressTracker, ProgressReporter
from tender_ai.services.pipeline.extraction_service import ItemExtractionService
from tender_ai.services.pipeline.feedback_service import FeedbackExtractionService
from tender_ai.services.pipeline.structure_service import StructureAnalysisService
from tender_ai.utils.logging import get_logger

LOGGER = get_logger(__name__)

StageRunner = Callable[[UUID, AIPreferences, ProgressReporter], Awaitable[str]]

PIPELINE_JOB_TYPES = (JobType.STRUCTURE, JobType.EXTRACTION, JobType.INDEXING, JobType.FEEDBACK)


class PipelineOrchestrator:
    """Runs the four setup stages strictly in order for one project.

    Each stage gets its own JobProgress row. An exception in any stage marks
    that row as error and propagates, so later stages never start and have
    no rows for the run. A retriggered run starts again from structure.
    """

    def __init__(self, session: AsyncSession, gateway: GenerationGateway):
        self.session = session
        self.gateway = gateway
        self.tracker = JobProgressTracker(session)
        self.structure = StructureAnalysisService(session, gateway)
        self.extraction = ItemExtractionService(session, gateway)
        self.indexer = EmbeddingIndexer(session, gateway)
        self.feedback = FeedbackExtractionService(session, gateway)

    def _stages(self) -> List[tuple[JobType, StageRunner]]:
        runners = {
            JobType.STRUCTURE: self.structure.run,
            JobType.EXTRACTION: self.extraction.run,
            JobType.INDEXING: self._run_indexing,
            JobType.FEEDBACK: self.feedback.run,
        }
        return [(job_type, runners[job_type]) for job_type in PIPELINE_JOB_TYPES]

    async def _run_indexing(
        self, project_id: UUID, preferences: AIPreferences, report: ProgressReporter
    ) -> str:
        result = await self.indexer.index_project(project_id, report)
        return result.summary

    async def run(self, project_id: UUID, user_id: Optional[str] = None) -> List[JobProgress]:
        """Execute every stage and return the completed job rows.

        Raises:
            NotFoundError: If the project does not exist
            AppError: Whatever the failing stage raised
        """
        preferences = await load_preferences(self.session, project_id, user_id)
        LOGGER.info("Starting project setup pipeline", extra={"project_id": str(project_id)})

        jobs: List[JobProgress] = []
        for job_type, runner in self._stages():
            async with self.tracker.track(project_id, job_type) as job:
                summary = await runner(project_id, preferences, self._reporter(job))
                await self.tracker.complete(job, summary)
            jobs.append(job)

        LOGGER.info(
            "Project setup pipeline finished",
            extra={"project_id": str(project_id), "summaries": [job.message for job in jobs]},
        )
        return jobs

    def _reporter(self, job: JobProgress) -> ProgressReporter:
        async def report(progress: float, message: str) -> None:
            await self.tracker.update(job, progress, message)
        return report
